"""Shared pytest fixtures for all tests."""

import boto3
import pytest
from moto import mock_aws

from filestore.config import BlockFSConfig, S3FSConfig
from filestore.local_backend import LocalStorageBackend
from filestore.manager import storage_manager
from filestore.s3_backend import S3StorageBackend

BUCKET = "filestore-test"


@pytest.fixture
def local_store(tmp_path):
    """
    Create a block store rooted in a temporary directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        LocalStorageBackend instance
    """
    return LocalStorageBackend(BlockFSConfig(root_path=str(tmp_path / "store")))


@pytest.fixture
def s3_config():
    return S3FSConfig(
        access_key_id="testing",
        secret_key="testing",
        region="us-east-1",
        bucket=BUCKET
    )


@pytest.fixture
def s3_store(s3_config, monkeypatch):
    """
    Create an S3 store backed by moto's in-process S3 with an empty bucket.

    Returns:
        S3StorageBackend instance
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket=BUCKET)
        yield S3StorageBackend(s3_config)


@pytest.fixture(params=["local", "s3"])
def any_store(request):
    """Run a test once against each backend."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def reset_manager():
    storage_manager.reset()
    yield storage_manager
    storage_manager.reset()


@pytest.fixture
def read_object():
    """Read an object fully through the store under test."""
    def _read(store, path):
        handle = store.get_object(path)
        try:
            return handle.read()
        finally:
            handle.close()
    return _read
