"""Blob store for uploaded files (local disk for dev MVP).

The store is addressed as ``bucket/path``. Every call runs under a bounded
timeout; a timeout surfaces as TransientError (retryable), any other I/O
failure as StorageError (definitive).
"""

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from pathlib import Path, PurePosixPath
from typing import TypeVar
from uuid import UUID

import config
from errors import StorageError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BlobStore:
    """Local-disk blob store with public URLs served from STORAGE_PUBLIC_BASE_URL."""

    def __init__(
        self,
        root: str | Path,
        public_base_url: str,
        timeout_seconds: float = 10.0,
    ):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _full_path(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Invalid storage path: {path}")
        return self.root / bucket / relative

    async def _bounded(
        self,
        func: Callable[[], T],
        action: str,
        on_abandon: Callable[[], None] | None = None,
    ) -> T:
        # The worker thread cannot be cancelled; a timed-out call keeps running
        work = asyncio.ensure_future(asyncio.to_thread(func))
        try:
            return await asyncio.wait_for(asyncio.shield(work), self.timeout_seconds)
        except TimeoutError as e:
            work.add_done_callback(lambda done: self._after_abandoned(done, on_abandon))
            raise TransientError(f"Storage {action} timed out") from e
        except OSError as e:
            raise StorageError(f"Storage {action} failed: {e}") from e

    @staticmethod
    def _after_abandoned(work: asyncio.Future, on_abandon: Callable[[], None] | None) -> None:
        """Undo a timed-out call once its thread finally finishes."""
        if work.cancelled() or work.exception() is not None or on_abandon is None:
            return
        try:
            on_abandon()
        except OSError as e:
            logger.error("Cleanup after abandoned storage call failed: %s", e)

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        """
        Write a blob.

        Args:
            bucket: Bucket name (top-level directory)
            path: Key inside the bucket
            data: File content

        Returns:
            The stored path

        Raises:
            StorageError: If the key already exists or the write fails
            TransientError: If the write times out. A write that lands after
                the timeout is removed again.
        """
        full_path = self._full_path(bucket, path)

        def _write() -> None:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            # "xb" refuses to overwrite an existing key
            with open(full_path, "xb") as f:
                try:
                    f.write(data)
                except OSError:
                    full_path.unlink(missing_ok=True)
                    raise

        def _discard_late_write() -> None:
            full_path.unlink(missing_ok=True)
            logger.warning("Removed late blob write %s/%s", bucket, path)

        try:
            await self._bounded(_write, "upload", on_abandon=_discard_late_write)
        except StorageError:
            logger.warning("Blob upload failed for %s/%s", bucket, path)
            raise
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{path}"

    async def remove(self, bucket: str, paths: list[str]) -> None:
        """
        Delete blobs. Missing keys are ignored.

        Raises:
            StorageError: If a deletion fails
            TransientError: If the deletion times out
        """
        full_paths = [self._full_path(bucket, path) for path in paths]

        def _unlink() -> None:
            for full_path in full_paths:
                full_path.unlink(missing_ok=True)

        await self._bounded(_unlink, "remove")

    async def exists(self, bucket: str, path: str) -> bool:
        full_path = self._full_path(bucket, path)
        return await self._bounded(full_path.exists, "stat")


def generate_storage_key(owner_id: UUID, filename: str) -> str:
    """
    Generate a collision-resistant storage key for a file.

    The original name is not part of the key, only its extension.

    Args:
        owner_id: Uploading profile ID (first path segment)
        filename: Original filename

    Returns:
        Storage key like "<owner_id>/<32 hex chars>.pdf"
    """
    suffix = PurePosixPath(filename.replace("\\", "/")).suffix.lower()
    # Keep only sane extensions
    if not suffix[1:].isalnum() or len(suffix) > 16:
        suffix = ""
    return f"{owner_id}/{secrets.token_hex(16)}{suffix}"


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float = 0.2,
) -> T:
    """
    Run an async operation, retrying TransientError with exponential backoff.

    StorageError and every other exception propagate immediately.
    """
    if attempts is None:
        attempts = config.settings.STORAGE_RETRIES
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TransientError:
            if attempt == attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "Transient storage failure (attempt %d/%d), retrying in %.2fs",
                attempt,
                attempts,
                delay,
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")


async def upload_with_retry(
    store: BlobStore,
    bucket: str,
    make_key: Callable[[], str],
    data: bytes,
) -> str:
    """
    Upload a blob, retrying timeouts under a fresh key each attempt.

    A timed-out write may still land later, so a retry never reuses its key.

    Returns:
        The key the blob was stored under
    """

    async def _attempt() -> str:
        return await store.upload(bucket, make_key(), data)

    return await with_retry(_attempt)


_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """Dependency returning the process-wide blob store."""
    global _store
    if _store is None:
        _store = BlobStore(
            root=config.settings.STORAGE_DIR,
            public_base_url=config.settings.STORAGE_PUBLIC_BASE_URL,
            timeout_seconds=config.settings.STORAGE_TIMEOUT_SECONDS,
        )
    return _store
