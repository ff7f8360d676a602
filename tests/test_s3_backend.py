"""Tests for the S3 backend against moto's in-process S3."""

import pytest
from moto import mock_aws

from filestore.base import StorageNotFoundError, UploadManifestError, UploadSessionError
from filestore.config import S3FSConfig
from filestore.s3_backend import S3StorageBackend

MIB = 1024 * 1024


def _pending_uploads(store):
    return store.client.list_multipart_uploads(Bucket=store.bucket_name).get("Uploads", [])


def test_initialize_registers_multipart_upload(s3_store):
    upload = s3_store.initialize_upload("/uploads/report.pdf")

    uploads = _pending_uploads(s3_store)
    assert [u["UploadId"] for u in uploads] == [upload.id]
    assert uploads[0]["Key"] == "uploads/report.pdf"


def test_chunk_index_maps_to_one_based_part_number(s3_store):
    upload = s3_store.initialize_upload("parts.bin")
    result = s3_store.write_chunk(upload.id, "parts.bin", 0, b"first part")

    parts = s3_store.client.list_parts(
        Bucket=s3_store.bucket_name, Key="parts.bin", UploadId=upload.id
    )["Parts"]

    assert [p["PartNumber"] for p in parts] == [1]
    assert parts[0]["ETag"] == result.id
    assert result.write_size == len(b"first part")


def test_complete_fails_on_mismatched_tag(s3_store, read_object):
    upload = s3_store.initialize_upload("bad.bin")
    good_tag = s3_store.write_chunk(upload.id, "bad.bin", 0, b"content").id

    with pytest.raises(UploadManifestError) as exc_info:
        s3_store.complete_upload(upload.id, "bad.bin", ['"00000000000000000000000000000000"'])

    assert exc_info.value.upload_id == upload.id
    # the session survives a rejected manifest
    s3_store.complete_upload(upload.id, "bad.bin", [good_tag])
    assert read_object(s3_store, "bad.bin") == b"content"


def test_complete_fails_on_empty_manifest(s3_store):
    upload = s3_store.initialize_upload("nothing.bin")

    with pytest.raises(UploadManifestError):
        s3_store.complete_upload(upload.id, "nothing.bin", [])

    assert len(_pending_uploads(s3_store)) == 1


def test_manifest_order_decides_part_numbers(s3_store):
    upload = s3_store.initialize_upload("swapped.bin")
    tag0 = s3_store.write_chunk(upload.id, "swapped.bin", 0, b"a" * (5 * MIB)).id
    tag1 = s3_store.write_chunk(upload.id, "swapped.bin", 1, b"b" * 10).id

    with pytest.raises(UploadManifestError):
        s3_store.complete_upload(upload.id, "swapped.bin", [tag1, tag0])


def test_completion_returns_final_etag(s3_store):
    upload = s3_store.initialize_upload("etag.bin")
    tag = s3_store.write_chunk(upload.id, "etag.bin", 0, b"data").id

    result = s3_store.complete_upload(upload.id, "etag.bin", [tag])

    assert result.is_complete
    assert result.md5
    assert _pending_uploads(s3_store) == []


def test_session_from_another_instance_is_adopted(s3_store, s3_config, read_object):
    upload = s3_store.initialize_upload("shared.bin")
    other = S3StorageBackend(s3_config)

    tag = other.write_chunk(upload.id, "shared.bin", 0, b"written elsewhere").id
    other.complete_upload(upload.id, "shared.bin", [tag])

    assert read_object(s3_store, "shared.bin") == b"written elsewhere"


def test_abort_releases_backend_session(s3_store):
    upload = s3_store.initialize_upload("abandon.bin")
    s3_store.write_chunk(upload.id, "abandon.bin", 0, b"partial")

    s3_store.abort_upload(upload.id, "abandon.bin")

    assert _pending_uploads(s3_store) == []
    with pytest.raises(UploadSessionError):
        s3_store.write_chunk(upload.id, "abandon.bin", 1, b"more")


def test_chunk_index_beyond_part_limit(s3_store):
    upload = s3_store.initialize_upload("huge.bin")

    with pytest.raises(ValueError):
        s3_store.write_chunk(upload.id, "huge.bin", 10000, b"x")


def test_get_dir_lists_prefixes_then_objects(s3_store):
    s3_store.put_object("docs/a.txt", b"12345")
    s3_store.put_object("docs/sub/x.bin", b"x")

    entries = s3_store.get_dir("/docs/")

    assert [(e.name, e.is_dir) for e in entries] == [("sub", True), ("a.txt", False)]
    prefix_entry, file_entry = entries
    assert prefix_entry.path == "docs/sub/"
    assert prefix_entry.size == ""
    assert file_entry.size == "5"
    assert file_entry.path == "docs"
    assert file_entry.type == ".txt"
    assert [e.id for e in entries] == [0, 1]


def test_put_get_copy(s3_store, read_object):
    output = s3_store.put_object("src.txt", b"payload")
    s3_store.copy_object("/src.txt", "copies/dest.txt")

    assert output.md5
    assert read_object(s3_store, "copies/dest.txt") == b"payload"


def test_get_missing_object(s3_store):
    with pytest.raises(StorageNotFoundError):
        s3_store.get_object("missing.txt")


def test_upload_stream_and_file(s3_store, tmp_path, read_object):
    source = tmp_path / "local.txt"
    source.write_bytes(b"from disk")

    s3_store.upload_file(str(source), "uploaded/local.txt")
    with open(source, "rb") as reader:
        s3_store.upload(reader, "uploaded/stream.txt")

    assert read_object(s3_store, "uploaded/local.txt") == b"from disk"
    assert read_object(s3_store, "uploaded/stream.txt") == b"from disk"


def test_upload_file_missing_source(s3_store, tmp_path):
    with pytest.raises(StorageNotFoundError):
        s3_store.upload_file(str(tmp_path / "absent.txt"), "x.txt")


def test_delete_object(s3_store):
    s3_store.put_object("gone.txt", b"x")

    s3_store.delete_object("/gone.txt")

    with pytest.raises(StorageNotFoundError):
        s3_store.get_object("gone.txt")


def test_delete_objects_removes_prefixes(s3_store):
    for key in ("logs/1.txt", "logs/deep/2.txt", "keep/3.txt"):
        s3_store.put_object(key, b"x")

    s3_store.delete_objects(["/logs/"])

    remaining = []
    s3_store.walk("", lambda path, info: remaining.append(path))
    assert remaining == ["/keep/3.txt"]


def test_delete_objects_refuses_whole_bucket(s3_store):
    with pytest.raises(ValueError):
        s3_store.delete_objects(["/"])


def test_walk_paginates_and_prefixes_paths(s3_store, s3_config):
    keys = [f"walk/{i}.txt" for i in range(5)]
    for key in keys:
        s3_store.put_object(key, b"w")
    paged = S3StorageBackend(s3_config.model_copy(update={"max_keys": 2}))
    visited = []

    paged.walk("walk/", lambda path, info: visited.append((path, info.size)))

    assert [v[0] for v in visited] == ["/" + k for k in keys]
    assert all(size == 1 for _, size in visited)


def test_walk_propagates_visitor_errors(s3_store):
    s3_store.put_object("w/a.txt", b"a")

    def visitor(path, info):
        raise RuntimeError(path)

    with pytest.raises(RuntimeError):
        s3_store.walk("w", visitor)


def test_presigned_url(s3_store):
    s3_store.put_object("share/report.pdf", b"pdf")

    url = s3_store.get_presigned_url("/share/report.pdf", days=1)

    assert "share/report.pdf" in url
    assert "Expires" in url


def test_set_object_public(s3_store):
    s3_store.put_object("public/image.png", b"png")

    url = s3_store.set_object_public("public/image.png")

    assert url == "https://filestore-test.s3.amazonaws.com/public/image.png"
    grants = s3_store.client.get_object_acl(Bucket=s3_store.bucket_name, Key="public/image.png")["Grants"]
    assert any(g["Permission"] == "READ" for g in grants)


def test_backend_identity_and_health(s3_store):
    assert s3_store.get_backend_type() == "s3"
    assert s3_store.resource_name() == "filestore-test"
    assert s3_store.health_check()


def test_health_check_missing_bucket(s3_config):
    with mock_aws():
        store = S3StorageBackend(s3_config)
        assert not store.health_check()


def test_client_honours_endpoint_and_path_style():
    store = S3StorageBackend(S3FSConfig(
        access_key_id="key",
        secret_key="secret",
        region="eu-west-1",
        bucket="media",
        endpoint="http://localhost:9000",
        disable_tls=True,
        force_path_style=True
    ))

    assert store.client.meta.endpoint_url == "http://localhost:9000"
    assert store.client.meta.config.s3["addressing_style"] == "path"
    assert store.client.meta.region_name == "eu-west-1"
