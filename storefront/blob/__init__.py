"""
Blob — storage for uploaded source files and generated error reports.

    from storefront import blob as B

    store = B.LocalBlobStore("./blobs", base_url="https://cdn.example.com")
    match await store.put("csv-uploads/u1/products.csv", data, "text/csv", {}):
        case Ok(stored):
            print(stored.url)
        case Error(e):
            print(e.message)
"""

from storefront.blob._store import (
    BlobError,
    StoredBlob,
    BlobStore,
    FunctionalBlobStore,
    blob_store_from,
    MemoryBlobStore,
    LocalBlobStore,
)

__all__ = (
    "BlobError",
    "StoredBlob",
    "BlobStore",
    "FunctionalBlobStore",
    "blob_store_from",
    "MemoryBlobStore",
    "LocalBlobStore",
)
