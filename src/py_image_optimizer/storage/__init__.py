"""存储层包。"""

from .blob_store import BlobStore, LocalBlobStore, MemoryBlobStore
from .content_store import METADATA_FILENAME, ContentStore, StorageKind


__all__ = [
    "METADATA_FILENAME",
    "BlobStore",
    "ContentStore",
    "LocalBlobStore",
    "MemoryBlobStore",
    "StorageKind",
]
