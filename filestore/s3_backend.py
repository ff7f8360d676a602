"""
S3 Storage Backend Implementation

This module implements the StorageBackend interface for S3 compatible object
stores (AWS S3, MinIO, ...). Chunked uploads map onto the native multipart
upload: create -> upload part -> complete with the list of part ETags.
"""
import logging
import os
import posixpath
from typing import Any, BinaryIO, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filestore.base import (
    StorageBackend,
    StorageError,
    StorageConnectionError,
    StorageNotFoundError,
    StoragePermissionError,
    UploadManifestError,
    UploadSessionError,
    FileVisitFunction
)
from filestore.config import S3FSConfig
from filestore.models import FileInfo, FileOperationOutput, FileStoreResultObject, UploadResult
from filestore.paths import normalize_key
from filestore.sessions import UploadSession, UploadSessionRegistry

logger = logging.getLogger(__name__)

# S3 part numbers run from 1 to 10000
MAX_PARTS = 10000

# DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}
_PERMISSION_CODES = {"AccessDenied", "AllAccessDisabled", "InvalidAccessKeyId", "SignatureDoesNotMatch", "403"}
_MANIFEST_CODES = {"InvalidPart", "InvalidPartOrder", "EntityTooSmall", "MalformedXML"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _translate(
    error: Exception,
    message: str,
    path: str,
    upload_id: Optional[str] = None
) -> StorageError:
    if isinstance(error, ClientError):
        code = _error_code(error)
        if code == "NoSuchUpload":
            cls = UploadSessionError
        elif code in _NOT_FOUND_CODES:
            cls = StorageNotFoundError
        elif code in _PERMISSION_CODES:
            cls = StoragePermissionError
        elif code in _MANIFEST_CODES:
            cls = UploadManifestError
        else:
            cls = StorageError
    elif isinstance(error, BotoCoreError):
        cls = StorageConnectionError
    else:
        cls = StorageError
    return cls(f"{message}: {error}", path=path, upload_id=upload_id)


class S3StorageBackend(StorageBackend):
    """
    S3 storage backend implementation.

    One boto3 client is created per backend instance and shared by every
    call. Caller chunk indices are zero-based; S3 part numbers are
    chunk index + 1.
    """

    def __init__(self, config: S3FSConfig):
        """
        Initialize S3 storage backend.

        Args:
            config: Object store configuration

        Raises:
            StorageConnectionError: If the boto3 session or client cannot be built
        """
        self.config = config
        self.bucket_name = config.bucket
        self.delimiter = "/"
        self.sessions = UploadSessionRegistry()

        client_config = None
        if config.force_path_style:
            client_config = Config(s3={"addressing_style": "path"})

        try:
            session = boto3.session.Session(
                aws_access_key_id=config.access_key_id or None,
                aws_secret_access_key=config.secret_key or None,
                region_name=config.region or None
            )
            self.client = session.client(
                "s3",
                endpoint_url=config.endpoint or None,
                use_ssl=not config.disable_tls,
                config=client_config
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageConnectionError(f"Failed to create S3 client: {e}") from e

        logger.info("S3 storage initialized for bucket: %s", self.bucket_name)

    def get_config(self) -> S3FSConfig:
        return self.config

    def _file_key(self, object_path: str) -> str:
        key = normalize_key(object_path)
        if not key or key.endswith("/"):
            raise ValueError(f"Object path must name an object: {object_path!r}")
        return key

    def _require_session(self, upload_id: str, key: str) -> UploadSession:
        """
        Validate an upload id for key.

        Sessions started by this instance are checked locally; other ids are
        confirmed with the backend and then adopted.
        """
        if upload_id in self.sessions:
            return self.sessions.require(upload_id, key)
        try:
            self.client.list_parts(Bucket=self.bucket_name, Key=key, UploadId=upload_id, MaxParts=1)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Unknown upload", key, upload_id) from e
        return self.sessions.register(UploadSession(
            upload_id=upload_id,
            object_path=key,
            chunk_size=self.config.chunk_size
        ))

    def get_dir(self, path: str) -> List[FileStoreResultObject]:
        """List one level below a prefix; common prefixes are reported as directories first."""
        prefix = normalize_key(path)
        try:
            resp = self.client.list_objects_v2(
                Bucket=self.bucket_name,
                Prefix=prefix,
                Delimiter=self.delimiter,
                MaxKeys=self.config.max_keys
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to list objects in %s: %s", self.bucket_name, e)
            raise _translate(e, "Failed to list objects", path) from e

        result = []
        count = 0
        for cp in resp.get("CommonPrefixes", []):
            result.append(FileStoreResultObject(
                id=count,
                name=posixpath.basename(cp["Prefix"].rstrip("/")),
                size="",
                path=cp["Prefix"],
                type="",
                is_dir=True
            ))
            count += 1

        for obj in resp.get("Contents", []):
            key = obj["Key"]
            result.append(FileStoreResultObject(
                id=count,
                name=posixpath.basename(key),
                size=str(obj["Size"]),
                path=posixpath.dirname(key),
                type=posixpath.splitext(key)[1],
                is_dir=False,
                modified=obj.get("LastModified")
            ))
            count += 1

        return result

    def get_object(self, path: str) -> BinaryIO:
        key = self._file_key(path)
        try:
            output = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to get object", path) from e
        return output["Body"]

    def put_object(self, path: str, data: bytes) -> FileOperationOutput:
        key = self._file_key(path)
        try:
            output = self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentLength=len(data)
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to put object", path) from e
        return FileOperationOutput(md5=output["ETag"])

    def copy_object(self, source_path: str, dest_path: str) -> None:
        source = self._file_key(source_path)
        dest = self._file_key(dest_path)
        try:
            self.client.copy_object(
                Bucket=self.bucket_name,
                Key=dest,
                CopySource={"Bucket": self.bucket_name, "Key": source}
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"Failed to copy {source_path} to", dest_path) from e

    def upload(self, reader: BinaryIO, key: str) -> None:
        s3_key = self._file_key(key)
        try:
            self.client.upload_fileobj(reader, self.bucket_name, s3_key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to upload stream", key) from e

    def upload_file(self, local_path: str, key: str) -> None:
        if not os.path.isfile(local_path):
            raise StorageNotFoundError(f"Unable to open file {local_path!r}", path=local_path)
        s3_key = self._file_key(key)
        try:
            self.client.upload_file(local_path, self.bucket_name, s3_key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"Failed to upload {local_path} to", key) from e

    def _delete_keys(self, keys: List[str], path: str) -> None:
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                output = self.client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": False}
                )
            except (ClientError, BotoCoreError) as e:
                raise _translate(e, "Failed to delete objects", path) from e
            errors = output.get("Errors", [])
            if errors:
                first = errors[0]
                raise StorageError(
                    f"Failed to delete {first.get('Key')}: {first.get('Code')} {first.get('Message')}",
                    path=first.get("Key")
                )
            logger.debug("Deleted %d objects under %s", len(batch), path)

    def delete_object(self, path: str) -> None:
        self._delete_keys([self._file_key(path)], path)

    def delete_objects(self, paths: List[str]) -> None:
        """Delete every object under each path, treating paths as prefixes."""
        prefixes = [normalize_key(path) for path in paths]
        if not all(prefixes):
            raise ValueError("Refusing to delete the whole bucket")

        first_error = None
        for path, prefix in zip(paths, prefixes):
            try:
                keys = self._list_keys(prefix)
                self._delete_keys(keys, path)
            except StorageError as e:
                logger.error("Failed to delete %s: %s", path, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def _list_keys(self, prefix: str) -> List[str]:
        keys = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to list objects", prefix) from e
        return keys

    def walk(self, path: str, visitor: FileVisitFunction) -> None:
        """Visit every object under a prefix; visitor paths carry a leading '/'."""
        prefix = normalize_key(path)
        query: Dict[str, Any] = {
            "Bucket": self.bucket_name,
            "Prefix": prefix,
            "MaxKeys": self.config.max_keys
        }
        truncated = True
        while truncated:
            try:
                resp = self.client.list_objects_v2(**query)
            except (ClientError, BotoCoreError) as e:
                raise _translate(e, "Failed to walk", path) from e
            for content in resp.get("Contents", []):
                key = content["Key"]
                visitor("/" + key, FileInfo(
                    name=posixpath.basename(key),
                    size=content["Size"],
                    modified=content.get("LastModified"),
                    is_dir=False
                ))
            truncated = resp.get("IsTruncated", False)
            if truncated:
                query["ContinuationToken"] = resp["NextContinuationToken"]

    def initialize_upload(self, object_path: str, chunk_size: Optional[int] = None) -> UploadResult:
        key = self._file_key(object_path)
        if chunk_size is None:
            chunk_size = self.config.chunk_size
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        try:
            resp = self.client.create_multipart_upload(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to initialize upload", key) from e

        session = self.sessions.register(UploadSession(
            upload_id=resp["UploadId"],
            object_path=key,
            chunk_size=chunk_size
        ))
        logger.info("Initialized multipart upload %s for %s", session.upload_id, key)
        return UploadResult(id=session.upload_id)

    def write_chunk(
        self,
        upload_id: str,
        object_path: str,
        chunk_id: int,
        data: bytes,
        offset: Optional[int] = None
    ) -> UploadResult:
        """Upload a chunk as part chunk_id + 1; offset has no meaning for parts and is ignored."""
        part_number = chunk_id + 1
        if chunk_id < 0 or part_number > MAX_PARTS:
            raise ValueError(f"chunk_id must be between 0 and {MAX_PARTS - 1}, got {chunk_id}")

        key = self._file_key(object_path)
        self._require_session(upload_id, key)
        try:
            result = self.client.upload_part(
                Body=data,
                Bucket=self.bucket_name,
                Key=key,
                PartNumber=part_number,
                UploadId=upload_id,
                ContentLength=len(data)
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, f"Failed to upload part {part_number}", key, upload_id) from e

        logger.debug("Uploaded part %d (%d bytes) of upload %s", part_number, len(data), upload_id)
        return UploadResult(id=result["ETag"], write_size=len(data))

    def complete_upload(
        self,
        upload_id: str,
        object_path: str,
        chunk_upload_ids: List[str]
    ) -> UploadResult:
        """Complete the multipart upload; manifest position i becomes part number i + 1."""
        key = self._file_key(object_path)
        self._require_session(upload_id, key)
        if not chunk_upload_ids:
            raise UploadManifestError(
                "A multipart upload needs at least one part",
                path=key,
                upload_id=upload_id
            )

        parts = [
            {"ETag": etag, "PartNumber": i + 1}
            for i, etag in enumerate(chunk_upload_ids)
        ]
        try:
            result = self.client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts}
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to complete upload %s for %s: %s", upload_id, key, e)
            raise _translate(e, "Failed to complete upload", key, upload_id) from e

        self.sessions.discard(upload_id)
        logger.info("Completed multipart upload %s for %s (%d parts)", upload_id, key, len(parts))
        return UploadResult(id=upload_id, is_complete=True, md5=result.get("ETag"))

    def abort_upload(self, upload_id: str, object_path: str) -> None:
        key = self._file_key(object_path)
        self._require_session(upload_id, key)
        try:
            self.client.abort_multipart_upload(Bucket=self.bucket_name, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            raise _translate(e, "Failed to abort upload", key, upload_id) from e
        self.sessions.discard(upload_id)
        logger.info("Aborted multipart upload %s for %s", upload_id, key)

    def resource_name(self) -> str:
        return self.bucket_name

    def get_backend_type(self) -> str:
        """Get backend type identifier."""
        return "s3"

    def health_check(self) -> bool:
        """Perform health check on the bucket."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 health check failed: %s", e)
            return False

    def get_presigned_url(self, path: str, days: int) -> str:
        """Presigned GET url valid for the given number of days."""
        key = self._file_key(path)
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=days * 24 * 60 * 60
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to sign request for %s: %s", key, e)
            raise _translate(e, "Failed to presign url", path) from e

    def set_object_public(self, path: str) -> str:
        """Grant public-read on an object and return its public url."""
        key = self._file_key(path)
        try:
            self.client.put_object_acl(Bucket=self.bucket_name, Key=key, ACL="public-read")
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to add public-read ACL on %s", key)
            raise _translate(e, "Failed to set object public", path) from e

        if self.config.endpoint:
            return f"{self.config.endpoint.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"
