"""
filestore - one storage interface over a local block filesystem and S3

This package lets applications switch storage backend through configuration
alone. Both backends implement the same StorageBackend interface, including a
chunked upload protocol (initialize -> write chunk -> complete / abort).

Quick Start:
    from filestore import StorageFactory, BlockFSConfig

    store = StorageFactory.create_backend(BlockFSConfig(root_path="/srv/files"))

    upload = store.initialize_upload("uploads/report.pdf")
    part = store.write_chunk(upload.id, "uploads/report.pdf", 0, data)
    store.complete_upload(upload.id, "uploads/report.pdf", [part.id])

Architecture:
    - filestore.base: Abstract StorageBackend interface and exceptions
    - filestore.local_backend: Local filesystem implementation
    - filestore.s3_backend: S3 implementation (boto3)
    - filestore.factory: Factory selecting a backend from its configuration
    - filestore.manager: Singleton manager for global storage access
"""
import logging

from filestore.base import (
    CHUNK_SIZE,
    StorageBackend,
    StorageError,
    StorageConfigurationError,
    StorageConnectionError,
    StorageNotFoundError,
    StoragePermissionError,
    UploadManifestError,
    UploadSessionError
)
from filestore.config import BlockFSConfig, S3FSConfig, Settings, StoreConfig
from filestore.factory import StorageFactory
from filestore.manager import StorageManager, configure_storage, storage_manager
from filestore.models import FileInfo, FileOperationOutput, FileStoreResultObject, UploadResult
from filestore.paths import PathParts, normalize_key

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Base classes and exceptions
    'CHUNK_SIZE',
    'StorageBackend',
    'StorageError',
    'StorageConfigurationError',
    'StorageConnectionError',
    'StorageNotFoundError',
    'StoragePermissionError',
    'UploadManifestError',
    'UploadSessionError',

    # Configuration
    'BlockFSConfig',
    'S3FSConfig',
    'Settings',
    'StoreConfig',

    # Models and paths
    'FileInfo',
    'FileOperationOutput',
    'FileStoreResultObject',
    'UploadResult',
    'PathParts',
    'normalize_key',

    # Factory and Manager
    'StorageFactory',
    'StorageManager',
    'configure_storage',
    'storage_manager',  # Global singleton instance
]

__version__ = '1.0.0'
