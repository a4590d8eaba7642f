import json

import pytest
from kungfu import Ok

from storefront.blob import (
    BlobError,
    FunctionalBlobStore,
    LocalBlobStore,
    MemoryBlobStore,
    StoredBlob,
    blob_store_from,
)
from tests.helpers import err, ok

pytestmark = pytest.mark.anyio


class TestMemoryBlobStore:
    async def test_put_then_get(self):
        store = MemoryBlobStore(base_url="memory://bucket/")

        stored = ok(await store.put("a/b.csv", b"data", "text/csv", {"userId": "u1"}))

        assert stored == StoredBlob(key="a/b.csv", url="memory://bucket/a/b.csv", size=4)
        assert ok(await store.get("a/b.csv")) == b"data"
        assert store.metadata("a/b.csv") == {"userId": "u1"}
        assert "a/b.csv" in store

    async def test_missing_key(self):
        store = MemoryBlobStore()

        error = err(await store.get("nope"))

        assert isinstance(error, BlobError)
        assert "nope" in error.message
        assert store.metadata("nope") is None

    async def test_put_overwrites(self):
        store = MemoryBlobStore()
        await store.put("k", b"old", "text/csv", {})
        await store.put("k", b"new", "text/csv", {})

        assert ok(await store.get("k")) == b"new"

    async def test_delete(self):
        store = MemoryBlobStore()
        await store.put("k", b"x", "text/csv", {})

        assert ok(await store.delete("k")) is True
        assert ok(await store.delete("k")) is False
        assert "k" not in store


class TestLocalBlobStore:
    async def test_put_writes_file_and_sidecar(self, tmp_path):
        store = LocalBlobStore(tmp_path, base_url="https://cdn.example.com")

        stored = ok(
            await store.put("csv-uploads/u1/p.csv", b"name\n", "text/csv", {"storeId": "s1"})
        )

        assert stored.url == "https://cdn.example.com/csv-uploads/u1/p.csv"
        assert (tmp_path / "csv-uploads/u1/p.csv").read_bytes() == b"name\n"
        sidecar = json.loads((tmp_path / "csv-uploads/u1/p.csv.meta.json").read_text())
        assert sidecar == {"content_type": "text/csv", "metadata": {"storeId": "s1"}}
        assert ok(await store.get("csv-uploads/u1/p.csv")) == b"name\n"

    async def test_delete_removes_file_and_sidecar(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        await store.put("a/p.csv", b"x", "text/csv", {})

        assert ok(await store.delete("a/p.csv")) is True
        assert not (tmp_path / "a/p.csv").exists()
        assert not (tmp_path / "a/p.csv.meta.json").exists()
        assert ok(await store.delete("a/p.csv")) is False

    async def test_missing_file(self, tmp_path):
        error = err(await LocalBlobStore(tmp_path).get("missing.csv"))

        assert isinstance(error.cause, FileNotFoundError)

    @pytest.mark.parametrize("key", ["../escape.csv", "/abs.csv", "a/../../b.csv", ""])
    async def test_keys_cannot_leave_the_root(self, tmp_path, key):
        store = LocalBlobStore(tmp_path / "root")

        assert isinstance(err(await store.put(key, b"x", "text/csv", {})).cause, ValueError)
        assert isinstance(err(await store.get(key)).cause, ValueError)
        assert not (tmp_path / "escape.csv").exists()


class TestFunctionalBlobStore:
    async def test_delegates_to_functions(self):
        calls = []

        async def put(key, data, content_type, metadata):
            calls.append((key, content_type, dict(metadata)))
            return Ok(StoredBlob(key=key, url=f"s3://bucket/{key}", size=len(data)))

        async def get(key):
            return Ok(b"from s3")

        async def delete(key):
            calls.append(("delete", key))
            return Ok(True)

        store = blob_store_from(put, get, delete)

        assert isinstance(store, FunctionalBlobStore)
        assert ok(await store.put("k", b"abc", "text/csv", {"a": "b"})).url == "s3://bucket/k"
        assert ok(await store.get("k")) == b"from s3"
        assert ok(await store.delete("k")) is True
        assert calls == [("k", "text/csv", {"a": "b"}), ("delete", "k")]
