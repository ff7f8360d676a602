from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FileStoreResultObject(BaseModel):
    """One entry of a directory listing."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str = Field(alias="fileName")
    size: str
    path: str = Field(alias="filePath")
    type: str
    is_dir: bool = Field(alias="isdir")
    modified: Optional[datetime] = None
    modified_by: str = Field(default="", alias="modifiedBy")


class FileOperationOutput(BaseModel):
    md5: str = ""


class UploadResult(BaseModel):
    """Result of a chunked upload step.

    ``id`` is the upload id for initialize/complete and the chunk
    identifier for write_chunk.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    write_size: int = Field(default=0, alias="size")
    is_complete: bool = Field(default=False, alias="isComplete")
    md5: Optional[str] = None


class FileInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    size: int
    modified: Optional[datetime] = None
    is_dir: bool = False
