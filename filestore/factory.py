"""
Storage Factory for Creating Storage Backends

This module implements the Factory pattern for creating storage backend
instances. The backend is selected by the `kind` tag of the configuration
variant, and the config must be the class registered for that kind.
"""
import logging
from typing import Any, Dict, Optional, Type

from pydantic import TypeAdapter, ValidationError

from filestore.base import StorageBackend, StorageConfigurationError
from filestore.config import BlockFSConfig, S3FSConfig, Settings, StoreConfig

logger = logging.getLogger(__name__)

_store_config_adapter = TypeAdapter(StoreConfig)


class StorageFactory:
    """
    Factory for creating storage backend instances.

    Supports:
    - local (BlockFSConfig)
    - s3 (S3FSConfig)
    """

    # Registry of available backends keyed by config kind
    _backends: Dict[str, Type[StorageBackend]] = {}
    # Config class each registered kind accepts
    _config_types: Dict[str, type] = {}

    @classmethod
    def register_backend(cls, kind: str, backend_class: Type[StorageBackend], config_class: type):
        """
        Register a storage backend implementation.

        Args:
            kind: Config kind the backend serves (e.g. 'local', 's3')
            backend_class: Backend class implementing StorageBackend
            config_class: Configuration type the backend is built from
        """
        cls._backends[kind.lower()] = backend_class
        cls._config_types[kind.lower()] = config_class
        logger.debug("Registered storage backend: %s", kind)

    @classmethod
    def create_backend(cls, config: Any) -> StorageBackend:
        """
        Create a storage backend instance.

        Args:
            config: BlockFSConfig, S3FSConfig or a dict carrying a 'kind'
                key that validates as one of them

        Returns:
            StorageBackend instance

        Raises:
            StorageConfigurationError: If the configuration is not a
                recognised variant
        """
        if isinstance(config, dict):
            try:
                config = _store_config_adapter.validate_python(config)
            except ValidationError as e:
                raise StorageConfigurationError(
                    f"Invalid File System Type Configuration: {e}"
                ) from e

        kind = getattr(config, "kind", None)
        if not isinstance(kind, str):
            raise StorageConfigurationError(
                f"Invalid File System Type Configuration: {config!r}"
            )

        if kind not in cls._backends:
            cls._load_backend(kind)

        config_class = cls._config_types.get(kind)
        if config_class is None or not isinstance(config, config_class):
            raise StorageConfigurationError(
                f"Invalid File System Type Configuration: {type(config).__name__} "
                f"is not the configuration of the {kind} backend"
            )

        backend = cls._backends[kind](config)
        logger.info("Storage backend '%s' initialized", kind)
        return backend

    @classmethod
    def _load_backend(cls, kind: str):
        """Load a storage backend on first use."""
        if kind == "local":
            from filestore.local_backend import LocalStorageBackend
            cls.register_backend("local", LocalStorageBackend, BlockFSConfig)

        elif kind == "s3":
            from filestore.s3_backend import S3StorageBackend
            cls.register_backend("s3", S3StorageBackend, S3FSConfig)

        else:
            raise StorageConfigurationError(
                f"Unknown storage backend: {kind}. "
                f"Available: local, s3"
            )

    @classmethod
    def create_from_env(cls, settings: Optional[Settings] = None) -> StorageBackend:
        """
        Create storage backend from application settings/environment.

        Args:
            settings: Settings object; read from the environment when omitted

        Returns:
            StorageBackend instance
        """
        settings = settings or Settings()
        backend_type = settings.STORAGE_BACKEND.lower()

        if backend_type == "local":
            config = BlockFSConfig(
                root_path=settings.LOCAL_STORAGE_PATH,
                chunk_size=settings.UPLOAD_CHUNK_SIZE
            )

        elif backend_type == "s3":
            if not settings.S3_BUCKET:
                raise StorageConfigurationError("S3_BUCKET is required for the s3 backend")
            config = S3FSConfig(
                access_key_id=settings.S3_ACCESS_KEY_ID,
                secret_key=settings.S3_SECRET_KEY,
                region=settings.S3_REGION,
                bucket=settings.S3_BUCKET,
                endpoint=settings.S3_ENDPOINT,
                disable_tls=settings.S3_DISABLE_TLS,
                force_path_style=settings.S3_FORCE_PATH_STYLE,
                chunk_size=settings.UPLOAD_CHUNK_SIZE
            )

        else:
            raise StorageConfigurationError(f"Unknown storage backend: {backend_type}")

        logger.info("Initializing storage backend: %s", backend_type)
        return cls.create_backend(config)
