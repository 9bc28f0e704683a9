"""Local filesystem storage backend.

Useful for running a cache during local development or on a single host.
Structured values live at ``{cache_dir}/{key}.json``; binary values live at
``{cache_dir}/{key}`` or ``{cache_dir}/{key}.{ext}`` when their media type has
a file extension, which is how the media type is recovered on read.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional

from object_cache.backends.base import StorageBackend
from object_cache.codecs import STRUCTURED_SUFFIX
from object_cache.exceptions import StorageError
from object_cache.mime import JSON, OCTET_STREAM, get_extension, get_type, is_known_extension
from object_cache.models import StoredEntry

logger = logging.getLogger(__name__)

_STRUCTURED_EXTENSION = STRUCTURED_SUFFIX.lstrip(".")


class FileSystemBackend(StorageBackend):
    """Stores cache entries as files in a local directory.

    Attributes:
        cache_dir: Directory to place cached files in
    """

    def __init__(self, cache_dir: Path, create_directory: bool = False):
        """Initialize the filesystem backend.

        Args:
            cache_dir: Directory to place cached files in
            create_directory: Create the directory (and parents) now if it
                doesn't exist; otherwise it is created by the first write
        """
        self.cache_dir = Path(cache_dir).expanduser()
        if create_directory:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_base_path(self, storage_id: str) -> Path:
        """Map a storage identifier to its path inside the cache directory.

        Raises:
            ValueError: If the identifier is empty or escapes the cache directory
        """
        relative = PurePosixPath(storage_id)
        if not storage_id or relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage identifier: {storage_id!r}")
        return self.cache_dir.joinpath(*relative.parts)

    def _get_physical_path(self, storage_id: str, media_type: str) -> Path:
        """Get the file a write of the given media type should land in."""
        base = self._get_base_path(storage_id)
        extension = get_extension(media_type)

        # A binary JSON blob named {key}.json would shadow the structured entry
        if extension is None or extension == _STRUCTURED_EXTENSION:
            return base
        return base.with_name(f"{base.name}.{extension}")

    def _find_variants(self, base: Path) -> list[Path]:
        """Find ``{base}.{ext}`` files for known extensions, newest first."""
        if not base.parent.is_dir():
            return []

        prefix = f"{base.name}."
        variants = []
        for path in base.parent.iterdir():
            if not path.name.startswith(prefix) or not path.is_file():
                continue
            extension = path.name[len(prefix):]
            if "." in extension or extension == _STRUCTURED_EXTENSION:
                continue
            if is_known_extension(extension):
                variants.append(path)

        return sorted(variants, key=lambda p: p.stat().st_mtime, reverse=True)

    def _find_files(self, storage_id: str) -> list[Path]:
        """All physical files holding the identifier, preferred file first."""
        base = self._get_base_path(storage_id)
        files = self._find_variants(base)
        if base.is_file():
            files.append(base)
        return files

    def _read_sync(self, storage_id: str) -> Optional[StoredEntry]:
        try:
            base = self._get_base_path(storage_id)
            files = self._find_files(storage_id)
            if not files:
                return None

            path = files[0]
            data = path.read_bytes()
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            # Removed between listing and reading
            return None
        except OSError as e:
            raise StorageError(
                f"Failed to read cache file for '{storage_id}': {e}",
                storage_id=storage_id,
                operation="read",
            ) from e

        # Only {base}.{ext} variants carry a media type; a bare binary file is untyped
        if path != base:
            media_type = get_type(path.name) or OCTET_STREAM
        elif base.name.endswith(STRUCTURED_SUFFIX):
            media_type = JSON
        else:
            media_type = OCTET_STREAM

        return StoredEntry(
            data=data,
            media_type=media_type,
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def _write_sync(self, storage_id: str, data: bytes, media_type: str) -> Path:
        target = self._get_physical_path(storage_id, media_type)
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, target)

            for path in self._find_files(storage_id):
                if path != target:
                    path.unlink(missing_ok=True)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to write cache file {target}: {e}",
                storage_id=storage_id,
                operation="write",
            ) from e

        return target

    def _delete_sync(self, storage_id: str) -> int:
        removed = 0
        try:
            for path in self._find_files(storage_id):
                path.unlink(missing_ok=True)
                removed += 1
        except OSError as e:
            raise StorageError(
                f"Failed to delete cache file for '{storage_id}': {e}",
                storage_id=storage_id,
                operation="delete",
            ) from e
        return removed

    def _exists_sync(self, storage_id: str) -> bool:
        try:
            return bool(self._find_files(storage_id))
        except OSError as e:
            raise StorageError(
                f"Failed to check cache file for '{storage_id}': {e}",
                storage_id=storage_id,
                operation="exists",
            ) from e

    async def read(self, storage_id: str) -> Optional[StoredEntry]:
        return await self._run_blocking(self._read_sync, storage_id)

    async def write(self, storage_id: str, data: bytes, media_type: str) -> None:
        path = await self._run_blocking(self._write_sync, storage_id, data, media_type)
        logger.debug(f"Wrote {len(data)} bytes to {path}")

    async def delete(self, storage_id: str) -> None:
        removed = await self._run_blocking(self._delete_sync, storage_id)
        if removed:
            logger.debug(f"Removed {removed} cache file(s) for '{storage_id}'")

    async def exists(self, storage_id: str) -> bool:
        return await self._run_blocking(self._exists_sync, storage_id)

    def get_cache_size(self) -> int:
        """Get the total size of cached files in bytes.

        Returns:
            Total size in bytes
        """
        if not self.cache_dir.exists():
            return 0

        total_size = 0
        for path in self.cache_dir.rglob("*"):
            if path.is_file():
                total_size += path.stat().st_size

        return total_size
