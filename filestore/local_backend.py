"""
Local Filesystem Storage Backend Implementation

This module implements the StorageBackend interface on a local block
filesystem. Chunked uploads are assembled in place: initialize_upload
creates the destination file and every chunk is a positional write into it.
"""
import logging
import os
import shutil
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, List, Optional

from filestore.base import (
    StorageBackend,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
    UploadSessionError,
    FileVisitFunction
)
from filestore.checksum import file_md5
from filestore.config import BlockFSConfig
from filestore.models import FileInfo, FileOperationOutput, FileStoreResultObject, UploadResult
from filestore.paths import normalize_key
from filestore.sessions import UploadSession, UploadSessionRegistry

logger = logging.getLogger(__name__)


def _translate(error: OSError, message: str, path: str, upload_id: Optional[str] = None) -> StorageError:
    if isinstance(error, FileNotFoundError):
        cls = StorageNotFoundError
    elif isinstance(error, PermissionError):
        cls = StoragePermissionError
    else:
        cls = StorageError
    return cls(f"{message}: {error}", path=path, upload_id=upload_id)


def _file_info(path: Path) -> FileInfo:
    stat = path.stat()
    return FileInfo(
        name=path.name,
        size=stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        is_dir=path.is_dir()
    )


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem storage backend implementation.

    Every path is resolved below root_path. Chunk writes are positional
    (offset = chunk index * session chunk size) and do not check chunk
    length, so a short chunk that is not the last one leaves a zero-filled
    gap in the assembled file.
    """

    def __init__(self, config: Optional[BlockFSConfig] = None):
        """
        Initialize local storage backend.

        Args:
            config: Block store configuration; defaults to BlockFSConfig()

        Raises:
            StorageError: If the root directory cannot be created
        """
        self.config = config or BlockFSConfig()
        self.base_path = Path(self.config.root_path).resolve()
        self.sessions = UploadSessionRegistry()
        # Guards session state and the backing files of open uploads
        self._write_lock = threading.RLock()

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _translate(e, "Failed to create local storage directory", str(self.base_path)) from e
        logger.info("Local storage initialized at: %s", self.base_path)

    def _get_full_path(self, remote_path: str) -> Path:
        """
        Convert remote path to full local path.

        Args:
            remote_path: Relative path in storage

        Returns:
            Full local filesystem path

        Raises:
            StorageError: If the path resolves outside the root
        """
        full_path = self.base_path / normalize_key(remote_path)
        try:
            full_path.resolve().relative_to(self.base_path)
        except ValueError:
            raise StorageError(
                f"Invalid path: {remote_path} resolves outside base directory",
                path=remote_path
            )
        return full_path

    def _file_key(self, object_path: str) -> str:
        key = normalize_key(object_path)
        if not key or key.endswith("/"):
            raise ValueError(f"Object path must name a file: {object_path!r}")
        return key

    def _storage_path(self, full_path: Path) -> str:
        relative = full_path.relative_to(self.base_path).as_posix()
        return "/" if relative == "." else "/" + relative

    def get_dir(self, path: str) -> List[FileStoreResultObject]:
        """List the immediate contents of a local directory."""
        directory = self._get_full_path(path)
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
            objects = []
            for i, entry in enumerate(entries):
                stat = entry.stat()
                objects.append(FileStoreResultObject(
                    id=i,
                    name=entry.name,
                    size=str(stat.st_size),
                    path=normalize_key(path),
                    type=os.path.splitext(entry.name)[1],
                    is_dir=entry.is_dir(),
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
                ))
            return objects
        except OSError as e:
            raise _translate(e, "Failed to list directory", path) from e

    def get_object(self, path: str) -> BinaryIO:
        try:
            return open(self._get_full_path(path), "rb")
        except OSError as e:
            raise _translate(e, "Failed to open file", path) from e

    def put_object(self, path: str, data: bytes) -> FileOperationOutput:
        """Write data to path; an empty payload only creates the parent directories."""
        target = self._get_full_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if not data:
                return FileOperationOutput()
            with open(target, "wb") as dest:
                dest.write(data)
        except OSError as e:
            raise _translate(e, "Failed to write file", path) from e

        md5, _ = file_md5(target)
        return FileOperationOutput(md5=md5)

    def copy_object(self, source_path: str, dest_path: str) -> None:
        source = self._get_full_path(source_path)
        dest = self._get_full_path(dest_path)
        try:
            if not source.is_file():
                raise StorageNotFoundError(f"File not found: {source_path}", path=source_path)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as e:
            raise _translate(e, f"Failed to copy {source_path} to", dest_path) from e

    def upload(self, reader: BinaryIO, key: str) -> None:
        target = self._get_full_path(self._file_key(key))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as dest:
                shutil.copyfileobj(reader, dest)
        except OSError as e:
            raise _translate(e, "Failed to upload stream", key) from e

    def upload_file(self, local_path: str, key: str) -> None:
        if not os.path.isfile(local_path):
            raise StorageNotFoundError(f"Source file not found: {local_path}", path=local_path)
        with open(local_path, "rb") as source:
            self.upload(source, key)

    def delete_object(self, path: str) -> None:
        """Delete a file, or a directory and everything below it."""
        target = self._get_full_path(path)
        if target == self.base_path:
            raise StorageError("Refusing to delete the storage root", path=path)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            raise _translate(e, "Failed to delete", path) from e

    def delete_objects(self, paths: List[str]) -> None:
        first_error = None
        for path in paths:
            try:
                self.delete_object(path)
            except StorageError as e:
                logger.error("Failed to delete %s: %s", path, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def walk(self, path: str, visitor: FileVisitFunction) -> None:
        """Visit the root, then every directory and file below it, in lexical order."""
        root = self._get_full_path(path)
        if not root.exists():
            raise StorageNotFoundError(f"Path not found: {path}", path=path)
        try:
            visitor(self._storage_path(root), _file_info(root))
            if not root.is_dir():
                return
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames.sort()
                current = Path(dirpath)
                for name in sorted(dirnames + filenames):
                    entry = current / name
                    visitor(self._storage_path(entry), _file_info(entry))
        except OSError as e:
            raise _translate(e, "Failed to walk", path) from e

    def initialize_upload(self, object_path: str, chunk_size: Optional[int] = None) -> UploadResult:
        key = self._file_key(object_path)
        if chunk_size is None:
            chunk_size = self.config.chunk_size
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        target = self._get_full_path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb"):
                pass
        except OSError as e:
            raise _translate(e, "Failed to initialize upload", key) from e

        session = self.sessions.register(UploadSession(
            upload_id=str(uuid.uuid4()),
            object_path=key,
            chunk_size=chunk_size
        ))
        logger.info("Initialized upload %s for %s", session.upload_id, key)
        return UploadResult(id=session.upload_id)

    def write_chunk(
        self,
        upload_id: str,
        object_path: str,
        chunk_id: int,
        data: bytes,
        offset: Optional[int] = None
    ) -> UploadResult:
        """Write a chunk at chunk_id * chunk_size, or at offset when given."""
        if chunk_id < 0:
            raise ValueError(f"chunk_id must be zero or positive, got {chunk_id}")
        if offset is not None and offset < 0:
            raise ValueError(f"offset must be zero or positive, got {offset}")

        key = self._file_key(object_path)
        target = self._get_full_path(key)

        with self._write_lock:
            session = self.sessions.require(upload_id, key)
            position = offset if offset is not None else chunk_id * session.chunk_size
            try:
                # The file exists from initialize_upload until abort removes it
                fd = os.open(target, os.O_RDWR)
            except FileNotFoundError as e:
                raise UploadSessionError(
                    f"Upload {upload_id} has no file at {key}",
                    path=key,
                    upload_id=upload_id
                ) from e
            except OSError as e:
                raise _translate(e, f"Failed to write chunk {chunk_id}", key, upload_id) from e

            try:
                with os.fdopen(fd, "r+b") as handle:
                    handle.seek(position)
                    handle.write(data)
            except OSError as e:
                raise _translate(e, f"Failed to write chunk {chunk_id}", key, upload_id) from e

        logger.debug("Wrote chunk %d (%d bytes at %d) of upload %s", chunk_id, len(data), position, upload_id)
        return UploadResult(id="", write_size=len(data))

    def complete_upload(
        self,
        upload_id: str,
        object_path: str,
        chunk_upload_ids: List[str]
    ) -> UploadResult:
        """
        Close the session. The file is already assembled by the positional
        writes, so the manifest is not consulted; the final size and MD5
        are reported instead.
        """
        key = self._file_key(object_path)
        with self._write_lock:
            self.sessions.require(upload_id, key)
            md5, size = file_md5(self._get_full_path(key))
            self.sessions.discard(upload_id)
        logger.info("Completed upload %s for %s (%d bytes)", upload_id, key, size)
        return UploadResult(id=upload_id, write_size=size, is_complete=True, md5=md5)

    def abort_upload(self, upload_id: str, object_path: str) -> None:
        key = self._file_key(object_path)
        with self._write_lock:
            self.sessions.require(upload_id, key)
            try:
                self._get_full_path(key).unlink(missing_ok=True)
            except OSError as e:
                raise _translate(e, "Failed to abort upload", key, upload_id) from e
            self.sessions.discard(upload_id)
        logger.info("Aborted upload %s for %s", upload_id, key)

    def resource_name(self) -> str:
        return str(self.base_path)

    def get_backend_type(self) -> str:
        """Get backend type identifier."""
        return "local"

    def health_check(self) -> bool:
        """Perform health check on local storage."""
        try:
            if not self.base_path.exists():
                return False

            test_file = self.base_path / ".health_check"
            test_file.touch()
            test_file.unlink()

            return True
        except OSError as e:
            logger.error("Local storage health check failed: %s", e)
            return False
