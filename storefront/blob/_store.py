"""
Blob store — typed storage protocol for uploaded files.

All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

from kungfu import Result, Ok, Error


# ═══════════════════════════════════════════════════════════════════════════════
# Blob Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BlobError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


@dataclass(frozen=True, slots=True)
class StoredBlob:
    """What a put() left behind."""

    key: str
    url: str
    size: int


# ═══════════════════════════════════════════════════════════════════════════════
# Blob Store Protocol — Result-based
# ═══════════════════════════════════════════════════════════════════════════════


class BlobStore(Protocol):
    """
    Blob store protocol.

    Example — S3-backed implementation:

        class S3BlobStore:
            async def put(self, key, data, content_type, metadata):
                try:
                    await client.put_object(Bucket=bucket, Key=key, Body=data, ...)
                    return Ok(StoredBlob(key, f"https://{bucket}.s3/{key}", len(data)))
                except Exception as e:
                    return Error(BlobError("Failed to put", e))

            # ... get()
    """

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> Result[StoredBlob, BlobError]:
        """Store bytes under key. Overwrites."""
        ...

    async def get(self, key: str) -> Result[bytes, BlobError]:
        """Fetch bytes. Missing key is an error."""
        ...

    async def delete(self, key: str) -> Result[bool, BlobError]:
        """Remove blob. Returns Ok(True) if it existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Function-based Store Builder
# ═══════════════════════════════════════════════════════════════════════════════

type PutFn = Callable[
    [str, bytes, str, Mapping[str, str]], Awaitable[Result[StoredBlob, BlobError]]
]
type GetFn = Callable[[str], Awaitable[Result[bytes, BlobError]]]
type DeleteFn = Callable[[str], Awaitable[Result[bool, BlobError]]]


@dataclass(frozen=True)
class FunctionalBlobStore:
    """
    Blob store built from functions.

    Example:
        blobs = blob_store_from(put=bucket.upload, get=bucket.download, delete=bucket.remove)
    """

    _put: PutFn
    _get: GetFn
    _delete: DeleteFn

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> Result[StoredBlob, BlobError]:
        return await self._put(key, data, content_type, metadata)

    async def get(self, key: str) -> Result[bytes, BlobError]:
        return await self._get(key)

    async def delete(self, key: str) -> Result[bool, BlobError]:
        return await self._delete(key)


def blob_store_from(put: PutFn, get: GetFn, delete: DeleteFn) -> FunctionalBlobStore:
    """Create BlobStore from functions."""
    return FunctionalBlobStore(_put=put, _get=get, _delete=delete)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict[str, str])


class MemoryBlobStore:
    """
    In-memory blob store.

    Note: Single process only; contents do not survive a restart.
    """

    def __init__(self, base_url: str = "memory://blobs") -> None:
        self._objects: dict[str, _StoredObject] = {}
        self._base_url = base_url.rstrip("/")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> Result[StoredBlob, BlobError]:
        self._objects[key] = _StoredObject(bytes(data), content_type, dict(metadata))
        return Ok(StoredBlob(key=key, url=f"{self._base_url}/{key}", size=len(data)))

    async def get(self, key: str) -> Result[bytes, BlobError]:
        obj = self._objects.get(key)
        if obj is None:
            return Error(BlobError(f"No such blob: {key}"))
        return Ok(obj.data)

    async def delete(self, key: str) -> Result[bool, BlobError]:
        return Ok(self._objects.pop(key, None) is not None)

    def metadata(self, key: str) -> dict[str, str] | None:
        obj = self._objects.get(key)
        return dict(obj.metadata) if obj is not None else None

    def __contains__(self, key: object) -> bool:
        return key in self._objects


# ═══════════════════════════════════════════════════════════════════════════════
# Local Directory Store
# ═══════════════════════════════════════════════════════════════════════════════


class LocalBlobStore:
    """
    Blob store over a local directory.

    Metadata is kept in a `<key>.meta.json` sidecar. File I/O runs in a
    worker thread so the event loop never blocks on disk.
    """

    def __init__(self, root: str | Path, base_url: str = "file://blobs") -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise ValueError(f"Invalid blob key: {key!r}")
        return self._root.joinpath(*parts)

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> Result[StoredBlob, BlobError]:
        try:
            path = self._path(key)
            sidecar = json.dumps({"content_type": content_type, "metadata": dict(metadata)})
            await asyncio.to_thread(_write, path, data, sidecar)
            return Ok(StoredBlob(key=key, url=f"{self._base_url}/{key}", size=len(data)))
        except (OSError, ValueError) as e:
            return Error(BlobError(f"Failed to put {key}: {e}", e))

    async def get(self, key: str) -> Result[bytes, BlobError]:
        try:
            path = self._path(key)
            return Ok(await asyncio.to_thread(path.read_bytes))
        except (OSError, ValueError) as e:
            return Error(BlobError(f"Failed to get {key}: {e}", e))

    async def delete(self, key: str) -> Result[bool, BlobError]:
        try:
            path = self._path(key)
            return Ok(await asyncio.to_thread(_remove, path))
        except (OSError, ValueError) as e:
            return Error(BlobError(f"Failed to delete {key}: {e}", e))


def _write(path: Path, data: bytes, sidecar: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    path.with_name(path.name + ".meta.json").write_text(sidecar, encoding="utf-8")


def _remove(path: Path) -> bool:
    path.with_name(path.name + ".meta.json").unlink(missing_ok=True)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "BlobError",
    "StoredBlob",
    "BlobStore",
    "FunctionalBlobStore",
    "blob_store_from",
    "MemoryBlobStore",
    "LocalBlobStore",
)
