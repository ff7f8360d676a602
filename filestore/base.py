"""
Abstract Storage Interface for filestore

This module defines the base interface for all storage backends.
All storage implementations must inherit from StorageBackend and implement
all abstract methods.

Design Pattern: Strategy Pattern + Abstract Factory
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, List, Optional

from filestore.models import FileInfo, FileOperationOutput, FileStoreResultObject, UploadResult

# Default size of every chunk except the last one
CHUNK_SIZE = 10 * 1024 * 1024

FileVisitFunction = Callable[[str, FileInfo], None]


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (local block filesystem, S3, etc.) must
    implement this interface so that callers can switch backend through
    configuration alone.
    """

    @abstractmethod
    def get_dir(self, path: str) -> List[FileStoreResultObject]:
        """
        List the immediate contents of a directory or prefix.

        Args:
            path: Directory path in storage

        Returns:
            One result object per entry

        Raises:
            StorageError: If listing fails
        """
        pass

    @abstractmethod
    def get_object(self, path: str) -> BinaryIO:
        """
        Open an object for reading.

        Args:
            path: Object path in storage

        Returns:
            Readable binary stream (caller closes it)

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        pass

    @abstractmethod
    def put_object(self, path: str, data: bytes) -> FileOperationOutput:
        """
        Store bytes at path in a single call.

        Args:
            path: Destination path in storage
            data: Object content

        Returns:
            Operation output carrying the stored object's digest

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def copy_object(self, source_path: str, dest_path: str) -> None:
        """
        Copy an object within the store.

        Args:
            source_path: Existing object path
            dest_path: Destination object path

        Raises:
            StorageNotFoundError: If the source does not exist
        """
        pass

    @abstractmethod
    def upload(self, reader: BinaryIO, key: str) -> None:
        """
        Stream the contents of a reader to key.

        Args:
            reader: Binary stream positioned at the first byte to upload
            key: Destination path in storage
        """
        pass

    @abstractmethod
    def upload_file(self, local_path: str, key: str) -> None:
        """
        Upload a file from the local filesystem to key.

        Args:
            local_path: Path to local file
            key: Destination path in storage

        Raises:
            StorageNotFoundError: If the local file does not exist
        """
        pass

    @abstractmethod
    def delete_object(self, path: str) -> None:
        """
        Delete a single object (or directory on block storage).

        Args:
            path: Object path in storage
        """
        pass

    @abstractmethod
    def delete_objects(self, paths: List[str]) -> None:
        """
        Delete several objects. Every path is attempted; the first
        failure is raised once all have been tried.

        Args:
            paths: Object paths in storage
        """
        pass

    @abstractmethod
    def walk(self, path: str, visitor: FileVisitFunction) -> None:
        """
        Visit every entry below path.

        Args:
            path: Root of the walk
            visitor: Called with (path, FileInfo) per entry; exceptions
                raised by the visitor stop the walk and propagate
        """
        pass

    @abstractmethod
    def initialize_upload(self, object_path: str, chunk_size: Optional[int] = None) -> UploadResult:
        """
        Start a chunked upload session.

        Args:
            object_path: Destination of the assembled object
            chunk_size: Byte size every chunk except the last is expected
                to have; defaults to the backend's configured chunk size

        Returns:
            UploadResult whose id is the opaque upload id

        Raises:
            StorageError: If the backend cannot allocate the session
        """
        pass

    @abstractmethod
    def write_chunk(
        self,
        upload_id: str,
        object_path: str,
        chunk_id: int,
        data: bytes,
        offset: Optional[int] = None
    ) -> UploadResult:
        """
        Write one chunk of an upload session.

        Chunks are independent: they can arrive in any order and may be
        written concurrently. Rewriting a chunk with the same data leaves
        the same final content.

        Args:
            upload_id: Id returned by initialize_upload
            object_path: Same path passed to initialize_upload
            chunk_id: Zero-based chunk index
            data: Chunk bytes
            offset: Explicit byte offset, honoured by backends that
                assemble chunks by position

        Returns:
            UploadResult with the chunk identifier required by
            complete_upload and the number of bytes written

        Raises:
            UploadSessionError: If the session is unknown for this path
        """
        pass

    @abstractmethod
    def complete_upload(
        self,
        upload_id: str,
        object_path: str,
        chunk_upload_ids: List[str]
    ) -> UploadResult:
        """
        Finish an upload session.

        Args:
            upload_id: Id returned by initialize_upload
            object_path: Same path passed to initialize_upload
            chunk_upload_ids: Chunk identifiers in final assembly order

        Returns:
            UploadResult with is_complete set

        Raises:
            UploadSessionError: If the session is unknown for this path
            UploadManifestError: If the backend rejects the manifest
        """
        pass

    @abstractmethod
    def abort_upload(self, upload_id: str, object_path: str) -> None:
        """
        Abandon an upload session and release what it allocated.

        Args:
            upload_id: Id returned by initialize_upload
            object_path: Same path passed to initialize_upload
        """
        pass

    @abstractmethod
    def resource_name(self) -> str:
        """
        Get the name of the resource backing this store.

        Returns:
            Bucket name or root directory
        """
        pass

    @abstractmethod
    def get_backend_type(self) -> str:
        """
        Get the storage backend type identifier.

        Returns:
            Backend type string ('local' or 's3')
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Perform a health check on the storage backend.

        Returns:
            True if storage is accessible and healthy, False otherwise
        """
        pass


class StorageError(Exception):
    """Base exception for all storage-related errors."""

    def __init__(self, message: str, path: Optional[str] = None, upload_id: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.upload_id = upload_id


class StorageConfigurationError(StorageError):
    """Exception raised when a store cannot be built from its configuration."""
    pass


class StorageConnectionError(StorageError):
    """Exception raised when connection to storage backend fails."""
    pass


class StorageNotFoundError(StorageError):
    """Exception raised when requested file/object is not found."""
    pass


class StoragePermissionError(StorageError):
    """Exception raised when operation is not permitted due to access control."""
    pass


class UploadSessionError(StorageError):
    """Exception raised when an upload id is unknown, stale or bound to another path."""
    pass


class UploadManifestError(StorageError):
    """Exception raised when a completion manifest is empty or rejected."""
    pass
