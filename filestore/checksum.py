import hashlib
from pathlib import Path
from typing import Tuple, Union

from filestore.base import StorageError

READ_SIZE = 1024 * 1024


def file_md5(path: Union[str, Path], read_size: int = READ_SIZE) -> Tuple[str, int]:
    """
    Digest a file from its first byte.

    Returns:
        (hex md5, size in bytes)

    Raises:
        StorageError: If the file cannot be read
    """
    hasher = hashlib.md5()
    size = 0
    try:
        with open(path, "rb") as handle:
            for chunk in iter(lambda: handle.read(read_size), b""):
                hasher.update(chunk)
                size += len(chunk)
    except OSError as e:
        raise StorageError(f"Failed to compute digest of {path}: {e}", path=str(path)) from e
    return hasher.hexdigest(), size
