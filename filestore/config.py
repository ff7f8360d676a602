"""
Configuration for filestore

Store configuration variants plus environment driven settings used by
StorageFactory.create_from_env.
"""
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from filestore.base import CHUNK_SIZE

BASE_DIR = Path.cwd()

# .env.local overrides .env
load_dotenv(BASE_DIR / ".env", override=False)
load_dotenv(BASE_DIR / ".env.local", override=True)


class BlockFSConfig(BaseModel):
    """Local block filesystem store rooted at root_path."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    root_path: str = "./.local_storage"
    chunk_size: int = CHUNK_SIZE


class S3FSConfig(BaseModel):
    """S3 compatible object store."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["s3"] = "s3"
    access_key_id: str = ""
    secret_key: str = ""
    region: str = "us-east-1"
    bucket: str
    endpoint: Optional[str] = None
    disable_tls: bool = False
    force_path_style: bool = False
    max_keys: int = 1000
    chunk_size: int = CHUNK_SIZE


StoreConfig = Annotated[Union[BlockFSConfig, S3FSConfig], Field(discriminator="kind")]


class Settings(BaseSettings):
    """Storage settings"""

    model_config = SettingsConfigDict(extra="ignore")

    # Supported backends: 'local', 's3'
    STORAGE_BACKEND: str = "local"

    # Local Storage Configuration
    LOCAL_STORAGE_PATH: str = "./.local_storage"

    # S3 Configuration
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_KEY: str = ""
    S3_REGION: str = "us-east-1"
    S3_BUCKET: str = ""
    S3_ENDPOINT: Optional[str] = None
    S3_DISABLE_TLS: bool = False
    S3_FORCE_PATH_STYLE: bool = False

    UPLOAD_CHUNK_SIZE: int = CHUNK_SIZE

    LOG_LEVEL: str = "INFO"

