"""
Storage Manager - Singleton for Global Storage Access

This module provides a singleton StorageManager that wraps the storage backend
and provides a convenient API for the entire application.
"""
import logging
from typing import BinaryIO, List, Optional

from filestore.base import StorageBackend, FileVisitFunction
from filestore.config import Settings
from filestore.factory import StorageFactory
from filestore.models import FileOperationOutput, FileStoreResultObject, UploadResult

logger = logging.getLogger(__name__)


class StorageManager:
    """
    Singleton storage manager that provides a unified interface to the storage backend.

    Usage:
        from filestore import storage_manager

        upload = storage_manager.initialize_upload("uploads/report.pdf")
        part = storage_manager.write_chunk(upload.id, "uploads/report.pdf", 0, data)
        storage_manager.complete_upload(upload.id, "uploads/report.pdf", [part.id])
    """

    _instance = None
    _backend: Optional[StorageBackend] = None

    def __new__(cls):
        """Ensure only one instance exists (Singleton pattern)."""
        if cls._instance is None:
            cls._instance = super(StorageManager, cls).__new__(cls)
        return cls._instance

    def initialize(self, backend: StorageBackend):
        """
        Initialize the storage manager with a backend.

        Args:
            backend: StorageBackend instance to use
        """
        self._backend = backend
        logger.info("StorageManager initialized with %s backend", backend.get_backend_type())

    def reset(self):
        """Drop the configured backend."""
        self._backend = None

    def _ensure_initialized(self):
        if self._backend is None:
            raise RuntimeError(
                "StorageManager not initialized. Call storage_manager.initialize(backend) first."
            )

    @property
    def backend(self) -> StorageBackend:
        """Get the underlying storage backend."""
        self._ensure_initialized()
        return self._backend

    # Delegate all methods to the backend

    def get_dir(self, path: str) -> List[FileStoreResultObject]:
        return self.backend.get_dir(path)

    def get_object(self, path: str) -> BinaryIO:
        return self.backend.get_object(path)

    def put_object(self, path: str, data: bytes) -> FileOperationOutput:
        return self.backend.put_object(path, data)

    def copy_object(self, source_path: str, dest_path: str) -> None:
        self.backend.copy_object(source_path, dest_path)

    def upload(self, reader: BinaryIO, key: str) -> None:
        self.backend.upload(reader, key)

    def upload_file(self, local_path: str, key: str) -> None:
        self.backend.upload_file(local_path, key)

    def delete_object(self, path: str) -> None:
        self.backend.delete_object(path)

    def delete_objects(self, paths: List[str]) -> None:
        self.backend.delete_objects(paths)

    def walk(self, path: str, visitor: FileVisitFunction) -> None:
        self.backend.walk(path, visitor)

    def initialize_upload(self, object_path: str, chunk_size: Optional[int] = None) -> UploadResult:
        return self.backend.initialize_upload(object_path, chunk_size)

    def write_chunk(
        self,
        upload_id: str,
        object_path: str,
        chunk_id: int,
        data: bytes,
        offset: Optional[int] = None
    ) -> UploadResult:
        return self.backend.write_chunk(upload_id, object_path, chunk_id, data, offset)

    def complete_upload(self, upload_id: str, object_path: str, chunk_upload_ids: List[str]) -> UploadResult:
        return self.backend.complete_upload(upload_id, object_path, chunk_upload_ids)

    def abort_upload(self, upload_id: str, object_path: str) -> None:
        self.backend.abort_upload(upload_id, object_path)

    def resource_name(self) -> str:
        return self.backend.resource_name()

    def get_backend_type(self) -> str:
        """Get the type of storage backend being used."""
        return self.backend.get_backend_type()

    def health_check(self) -> bool:
        """Perform health check on storage backend."""
        return self.backend.health_check()

    def get_info(self) -> dict:
        """
        Get information about the storage backend.

        Returns:
            Dictionary with backend information
        """
        self._ensure_initialized()
        return {
            'backend_type': self._backend.get_backend_type(),
            'resource_name': self._backend.resource_name(),
            'healthy': self._backend.health_check()
        }


# Global singleton instance
storage_manager = StorageManager()


def configure_storage(settings: Optional[Settings] = None) -> StorageManager:
    """
    Build the backend described by settings and install it in the global manager.

    Args:
        settings: Settings object; read from the environment when omitted

    Returns:
        The initialized global storage manager
    """
    settings = settings or Settings()
    logging.getLogger("filestore").setLevel(settings.LOG_LEVEL)
    storage_manager.initialize(StorageFactory.create_from_env(settings))
    return storage_manager
