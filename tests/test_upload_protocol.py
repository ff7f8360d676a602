"""Chunked upload behaviour shared by both backends."""

import pytest

from filestore.base import UploadSessionError

MIB = 1024 * 1024
PART = 5 * MIB


def _upload(store, path, chunks, order=None, chunk_size=None):
    upload = store.initialize_upload(path, chunk_size=chunk_size)
    tags = [None] * len(chunks)
    for index in order or range(len(chunks)):
        result = store.write_chunk(upload.id, path, index, chunks[index])
        assert result.write_size == len(chunks[index])
        tags[index] = result.id
    return upload.id, tags


def test_chunks_are_assembled_in_index_order(any_store, read_object):
    chunks = [b"a" * PART, b"b" * PART, b"tail"]
    upload_id, tags = _upload(any_store, "data/blob.bin", chunks, chunk_size=PART)

    result = any_store.complete_upload(upload_id, "data/blob.bin", tags)

    assert result.is_complete
    assert read_object(any_store, "data/blob.bin") == b"".join(chunks)


def test_out_of_order_chunks_produce_ordered_content(any_store, read_object):
    chunks = [b"0" * PART, b"1" * PART, b"2" * 1024]
    upload_id, tags = _upload(any_store, "ooo.bin", chunks, order=[2, 0, 1], chunk_size=PART)

    any_store.complete_upload(upload_id, "ooo.bin", tags)

    assert read_object(any_store, "ooo.bin") == b"".join(chunks)


def test_rewriting_a_chunk_is_idempotent(any_store, read_object):
    path = "retry.bin"
    upload = any_store.initialize_upload(path, chunk_size=PART)
    first = any_store.write_chunk(upload.id, path, 0, b"x" * PART)
    retried = any_store.write_chunk(upload.id, path, 0, b"x" * PART)
    last = any_store.write_chunk(upload.id, path, 1, b"end")

    assert retried.id == first.id
    any_store.complete_upload(upload.id, path, [retried.id, last.id])

    assert read_object(any_store, path) == b"x" * PART + b"end"


def test_report_scenario(any_store, read_object):
    """10 MiB of 'A' then 4 MiB of 'B' with the default chunk size."""
    path = "uploads/report.pdf"
    upload = any_store.initialize_upload(path)
    tag0 = any_store.write_chunk(upload.id, path, 0, b"A" * (10 * MIB)).id
    tag1 = any_store.write_chunk(upload.id, path, 1, b"B" * (4 * MIB)).id

    any_store.complete_upload(upload.id, path, [tag0, tag1])

    content = read_object(any_store, path)
    assert len(content) == 14 * MIB
    assert content[:10485760] == b"A" * (10 * MIB)
    assert content[10485760:] == b"B" * (4 * MIB)


def test_leading_separator_is_stripped(any_store, read_object):
    upload = any_store.initialize_upload("/uploads/slash.txt")
    tag = any_store.write_chunk(upload.id, "uploads/slash.txt", 0, b"hello").id
    any_store.complete_upload(upload.id, "/uploads/slash.txt", [tag])

    assert read_object(any_store, "uploads/slash.txt") == b"hello"


def test_unknown_upload_id_is_rejected(any_store):
    any_store.initialize_upload("known.bin")

    with pytest.raises(UploadSessionError):
        any_store.write_chunk("not-an-upload", "known.bin", 0, b"data")


def test_upload_id_is_stale_after_completion(any_store):
    upload = any_store.initialize_upload("done.bin")
    tag = any_store.write_chunk(upload.id, "done.bin", 0, b"data").id
    any_store.complete_upload(upload.id, "done.bin", [tag])

    with pytest.raises(UploadSessionError):
        any_store.write_chunk(upload.id, "done.bin", 0, b"data")


def test_upload_id_bound_to_its_path(any_store):
    upload = any_store.initialize_upload("one.bin")

    with pytest.raises(UploadSessionError) as exc_info:
        any_store.write_chunk(upload.id, "two.bin", 0, b"data")

    assert exc_info.value.upload_id == upload.id


def test_negative_chunk_index_is_rejected(any_store):
    upload = any_store.initialize_upload("neg.bin")

    with pytest.raises(ValueError):
        any_store.write_chunk(upload.id, "neg.bin", -1, b"data")


@pytest.mark.parametrize("chunk_size", [0, -1])
def test_non_positive_chunk_size_is_rejected(any_store, chunk_size):
    with pytest.raises(ValueError):
        any_store.initialize_upload("sized.bin", chunk_size=chunk_size)

    assert len(any_store.sessions) == 0


def test_chunk_size_defaults_to_config(any_store):
    upload = any_store.initialize_upload("sized.bin")

    assert any_store.sessions.get(upload.id).chunk_size == any_store.config.chunk_size


def test_abort_ends_the_session(any_store):
    upload = any_store.initialize_upload("aborted.bin")
    any_store.write_chunk(upload.id, "aborted.bin", 0, b"partial")

    any_store.abort_upload(upload.id, "aborted.bin")

    with pytest.raises(UploadSessionError):
        any_store.complete_upload(upload.id, "aborted.bin", [""])
