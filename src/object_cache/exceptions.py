"""Exceptions raised by the object cache."""

from typing import Optional


class ObjectCacheError(Exception):
    """Base exception for object cache errors."""

    pass


class DecodeError(ObjectCacheError):
    """Raised when stored bytes cannot be decoded into the requested representation.

    A stored entry that fails to decode is never treated as a cache miss.

    Attributes:
        storage_id: Storage identifier of the offending entry
    """

    def __init__(self, message: str, storage_id: Optional[str] = None):
        super().__init__(message)
        self.storage_id = storage_id


class StorageError(ObjectCacheError):
    """Raised when a storage backend fails to read, write or delete an entry.

    Attributes:
        storage_id: Storage identifier being accessed
        operation: Backend operation that failed ("read", "write", "delete", "exists")
    """

    def __init__(
        self,
        message: str,
        storage_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.storage_id = storage_id
        self.operation = operation
