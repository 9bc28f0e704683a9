"""Storage backends for the object cache."""

from .base import StorageBackend
from .filesystem import FileSystemBackend
from .s3 import S3Backend

__all__ = ["StorageBackend", "FileSystemBackend", "S3Backend"]
