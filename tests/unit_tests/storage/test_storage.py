"""Unit tests for the blob store, storage keys and transient-retry helper."""

import asyncio
import re
from uuid import uuid4

import pytest

import config
from errors import StorageError, TransientError
from services.storage import BlobStore, generate_storage_key, upload_with_retry, with_retry


def test_storage_key_keeps_owner_and_extension_only():
    owner_id = uuid4()

    key = generate_storage_key(owner_id, "Signed Contract (final).PDF")

    assert re.fullmatch(rf"{owner_id}/[0-9a-f]{{32}}\.pdf", key)


@pytest.mark.parametrize("filename", ["README", "archive.", "weird.ex$t", "..\\..\\evil"])
def test_storage_key_drops_unsafe_extensions(filename):
    key = generate_storage_key(uuid4(), filename)

    assert re.fullmatch(r"[0-9a-f-]{36}/[0-9a-f]{32}", key)


def test_storage_keys_do_not_repeat():
    owner_id = uuid4()

    assert len({generate_storage_key(owner_id, "a.txt") for _ in range(500)}) == 500


@pytest.mark.asyncio
async def test_blob_store_upload_and_remove(blob_store):
    await blob_store.upload("documents", "owner/file.txt", b"hello")

    assert await blob_store.exists("documents", "owner/file.txt")
    assert (blob_store.root / "documents" / "owner" / "file.txt").read_bytes() == b"hello"
    assert blob_store.get_public_url("documents", "owner/file.txt") == "http://test/files/documents/owner/file.txt"

    await blob_store.remove("documents", ["owner/file.txt", "owner/missing.txt"])
    assert not await blob_store.exists("documents", "owner/file.txt")


@pytest.mark.asyncio
async def test_blob_store_never_overwrites(blob_store):
    await blob_store.upload("documents", "owner/file.txt", b"first")

    with pytest.raises(StorageError):
        await blob_store.upload("documents", "owner/file.txt", b"second")
    assert (blob_store.root / "documents" / "owner" / "file.txt").read_bytes() == b"first"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "owner/../../escape.txt"])
async def test_blob_store_rejects_path_traversal(blob_store, path):
    with pytest.raises(StorageError):
        await blob_store.upload("documents", path, b"x")


@pytest.mark.asyncio
async def test_with_retry_recovers_from_transient_failures():
    calls = []

    async def _flaky():
        calls.append(1)
        if len(calls) < 3:
            raise TransientError("timed out")
        return "ok"

    assert await with_retry(_flaky, attempts=3, base_delay=0) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_with_retry_gives_up_after_attempts():
    calls = []

    async def _always_slow():
        calls.append(1)
        raise TransientError("timed out")

    with pytest.raises(TransientError):
        await with_retry(_always_slow, attempts=2, base_delay=0)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_definitive_errors():
    calls = []

    async def _broken():
        calls.append(1)
        raise StorageError("bucket missing")

    with pytest.raises(StorageError):
        await with_retry(_broken, attempts=5, base_delay=0)
    assert calls == [1]


def _delay_storage_threads(monkeypatch, slow_calls=None):
    """Start the first ``slow_calls`` blob-store thread calls 0.2s late (all when None).

    Returns the list of calls that have finished.
    """
    real_to_thread = asyncio.to_thread
    started = []
    landed = []

    async def _to_thread(func, *args, **kwargs):
        started.append(func)
        if slow_calls is None or len(started) <= slow_calls:
            await asyncio.sleep(0.2)
        result = await real_to_thread(func, *args, **kwargs)
        landed.append(func)
        return result

    monkeypatch.setattr(asyncio, "to_thread", _to_thread)
    return landed


@pytest.mark.asyncio
async def test_blob_store_slow_write_times_out_as_transient(blob_store, monkeypatch):
    landed = _delay_storage_threads(monkeypatch)
    blob_store.timeout_seconds = 0.05

    with pytest.raises(TransientError):
        await blob_store.upload("documents", "owner/late.txt", b"late")

    await asyncio.sleep(0.4)
    assert len(landed) == 1
    assert not (blob_store.root / "documents" / "owner" / "late.txt").exists()


@pytest.mark.asyncio
async def test_blob_store_unwritable_root_is_definitive(tmp_path):
    root = tmp_path / "not-a-directory"
    root.write_bytes(b"")
    store = BlobStore(root=root, public_base_url="http://test/files")
    calls = []

    async def _upload():
        calls.append(1)
        return await store.upload("documents", "owner/file.txt", b"x")

    with pytest.raises(StorageError):
        await with_retry(_upload, attempts=3, base_delay=0)
    assert calls == [1]


@pytest.mark.asyncio
async def test_upload_with_retry_draws_a_fresh_key_per_attempt(blob_store, monkeypatch):
    _delay_storage_threads(monkeypatch, slow_calls=1)
    monkeypatch.setattr(config.settings, "STORAGE_RETRIES", 3)
    blob_store.timeout_seconds = 0.05
    keys = iter(["owner/first.txt", "owner/second.txt"])

    stored = await upload_with_retry(blob_store, "documents", lambda: next(keys), b"data")

    await asyncio.sleep(0.4)
    assert stored == "owner/second.txt"
    files = sorted(p.name for p in (blob_store.root / "documents").rglob("*") if p.is_file())
    assert files == ["second.txt"]
