"""object-cache - cache-aside storage for JSON objects and binary files.

This package provides:
- An async cache-aside orchestrator with staleness and stale-on-error semantics
- A local filesystem backend for development and single-host use
- An S3-compatible object storage backend
"""

from object_cache.cache import ObjectCache
from object_cache.exceptions import DecodeError, ObjectCacheError, StorageError
from object_cache.models import (
    BinaryCacheOptions,
    BinaryWithMetadata,
    CacheOptions,
    CacheResult,
    Representation,
    StoredEntry,
    ValueSource,
)

__version__ = "0.1.0"

__all__ = [
    "ObjectCache",
    "BinaryCacheOptions",
    "BinaryWithMetadata",
    "CacheOptions",
    "CacheResult",
    "Representation",
    "StoredEntry",
    "ValueSource",
    "DecodeError",
    "ObjectCacheError",
    "StorageError",
]
