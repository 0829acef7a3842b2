"""segblob: large binary objects stored as segments in a document collection.

Key features:
- Fixed-size segmentation with idempotent (blob_id, seq) upserts
- Truncation of stale segments when a blob is rewritten shorter
- Streaming reads with one bounded background worker per reader
- Size queries from the last segment only
- One-time unique index setup per store
"""

__version__ = "0.1.0"

from segblob.config import StoreConfig, load_config
from segblob.errors import BlobNotFoundError, SegblobError
from segblob.models import Segment, SortOrder
from segblob.reader import BlobReader
from segblob.store import DEFAULT_CHUNK_SIZE, BlobStore, open_store

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "BlobNotFoundError",
    "BlobReader",
    "BlobStore",
    "Segment",
    "SegblobError",
    "SortOrder",
    "StoreConfig",
    "load_config",
    "open_store",
    "__version__",
]
