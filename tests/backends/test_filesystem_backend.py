"""Tests for the local filesystem storage backend."""

import os
from datetime import timezone
from unittest.mock import patch

import pytest

from object_cache.backends import FileSystemBackend
from object_cache.exceptions import StorageError


class TestFileSystemBackendInit:
    """Tests for FileSystemBackend initialization."""

    def test_creates_directory_when_asked(self, tmp_path):
        """create_directory makes the directory and its parents."""
        cache_dir = tmp_path / "a" / "b"

        FileSystemBackend(cache_dir, create_directory=True)

        assert cache_dir.is_dir()

    def test_directory_created_lazily(self, tmp_path):
        """Without create_directory the directory appears on first write."""
        cache_dir = tmp_path / "lazy"
        backend = FileSystemBackend(cache_dir)
        assert not cache_dir.exists()

        backend._write_sync("k.json", b"{}", "application/json")

        assert (cache_dir / "k.json").is_file()

    def test_expands_user(self, tmp_path, monkeypatch):
        """A leading ~ is expanded."""
        monkeypatch.setenv("HOME", str(tmp_path))

        backend = FileSystemBackend("~/cache")

        assert backend.cache_dir == tmp_path / "cache"


class TestFileSystemBackendReadWrite:
    """Tests for read and write."""

    @pytest.mark.asyncio
    async def test_read_missing(self, fs_backend):
        """Reading an absent identifier returns None."""
        assert await fs_backend.read("missing.json") is None

    @pytest.mark.asyncio
    async def test_structured_round_trip(self, fs_backend, tmp_cache_dir):
        """JSON entries are stored at the identifier's path."""
        await fs_backend.write("doc.json", b'{"a": 1}', "application/json")

        entry = await fs_backend.read("doc.json")

        assert (tmp_cache_dir / "doc.json").read_bytes() == b'{"a": 1}'
        assert entry.data == b'{"a": 1}'
        assert entry.media_type == "application/json"
        assert entry.last_modified.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_binary_gets_extension(self, fs_backend, tmp_cache_dir):
        """Binary entries with a known media type get its extension."""
        await fs_backend.write("logo", b"png-bytes", "image/png")

        entry = await fs_backend.read("logo")

        assert (tmp_cache_dir / "logo.png").is_file()
        assert not (tmp_cache_dir / "logo").exists()
        assert entry.media_type == "image/png"

    @pytest.mark.asyncio
    async def test_octet_stream_has_no_extension(self, fs_backend, tmp_cache_dir):
        """application/octet-stream entries are stored under the bare name."""
        await fs_backend.write("blob", b"\x00", "application/octet-stream")

        entry = await fs_backend.read("blob")

        assert (tmp_cache_dir / "blob").is_file()
        assert entry.media_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_binary_json_not_stored_as_structured(self, fs_backend, tmp_cache_dir):
        """A binary entry with a JSON media type does not take the .json name."""
        await fs_backend.write("k", b"[]", "application/json")

        assert (tmp_cache_dir / "k").is_file()
        assert not (tmp_cache_dir / "k.json").exists()
        assert await fs_backend.read("k.json") is None

    @pytest.mark.asyncio
    async def test_bare_file_is_untyped_even_with_dotted_key(self, fs_backend, tmp_cache_dir):
        """A bare binary file reads as octet-stream whatever its name looks like."""
        await fs_backend.write("notes.txt", b"x", "application/octet-stream")

        entry = await fs_backend.read("notes.txt")

        assert (tmp_cache_dir / "notes.txt").is_file()
        assert entry.media_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_typed_blob_with_dotted_key_gets_extension(self, fs_backend, tmp_cache_dir):
        """A typed binary write always appends the extension, even if the key ends in it."""
        await fs_backend.write("notes.txt", b"x", "text/plain")

        entry = await fs_backend.read("notes.txt")

        assert sorted(p.name for p in tmp_cache_dir.iterdir()) == ["notes.txt.txt"]
        assert entry.media_type == "text/plain"

    @pytest.mark.asyncio
    async def test_media_type_change_replaces_file(self, fs_backend, tmp_cache_dir):
        """Rewriting with another media type leaves a single file."""
        await fs_backend.write("img", b"png", "image/png")
        await fs_backend.write("img", b"jpg", "image/jpeg")

        entry = await fs_backend.read("img")

        assert sorted(p.name for p in tmp_cache_dir.iterdir()) == ["img.jpg"]
        assert entry.data == b"jpg"
        assert entry.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_nested_identifiers(self, fs_backend, tmp_cache_dir):
        """Slashes in identifiers create subdirectories."""
        await fs_backend.write("reports/2024/q1.json", b"{}", "application/json")

        assert (tmp_cache_dir / "reports" / "2024" / "q1.json").is_file()
        assert await fs_backend.exists("reports/2024/q1.json") is True

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, fs_backend, tmp_cache_dir):
        """Writes replace the target atomically without leftovers."""
        await fs_backend.write("k.json", b"1", "application/json")
        await fs_backend.write("k.json", b"2", "application/json")

        assert [p.name for p in tmp_cache_dir.iterdir()] == ["k.json"]

    @pytest.mark.asyncio
    async def test_last_modified_tracks_writes(self, fs_backend, tmp_cache_dir):
        """last_modified reflects the file's modification time."""
        await fs_backend.write("k.json", b"1", "application/json")
        os.utime(tmp_cache_dir / "k.json", (1_700_000_000, 1_700_000_000))

        entry = await fs_backend.read("k.json")

        assert entry.last_modified.timestamp() == 1_700_000_000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("storage_id", ["", "/etc/passwd", "../outside.json", "a/../../b"])
    async def test_rejects_escaping_identifiers(self, fs_backend, storage_id):
        """Identifiers that leave the cache directory are rejected."""
        with pytest.raises(ValueError, match="Invalid storage identifier"):
            await fs_backend.read(storage_id)

    @pytest.mark.asyncio
    async def test_write_failure_raises_storage_error(self, fs_backend):
        """OS errors during writes surface as StorageError."""
        with patch("object_cache.backends.filesystem.os.replace", side_effect=PermissionError("denied")):
            with pytest.raises(StorageError) as exc_info:
                await fs_backend.write("k.json", b"{}", "application/json")

        assert exc_info.value.operation == "write"
        assert exc_info.value.storage_id == "k.json"
        assert list(fs_backend.cache_dir.iterdir()) == []


class TestFileSystemBackendDeleteExists:
    """Tests for delete and exists."""

    @pytest.mark.asyncio
    async def test_delete_removes_all_variants(self, fs_backend, tmp_cache_dir):
        """Deleting a binary identifier removes its extension variants."""
        await fs_backend.write("img", b"png", "image/png")
        (tmp_cache_dir / "img").write_bytes(b"stray")

        await fs_backend.delete("img")

        assert list(tmp_cache_dir.iterdir()) == []
        assert await fs_backend.exists("img") is False

    @pytest.mark.asyncio
    async def test_delete_keeps_structured_entry(self, fs_backend, tmp_cache_dir):
        """Deleting the binary identifier leaves {key}.json alone."""
        await fs_backend.write("k.json", b"{}", "application/json")
        await fs_backend.write("k", b"bin", "image/png")

        await fs_backend.delete("k")

        assert [p.name for p in tmp_cache_dir.iterdir()] == ["k.json"]

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, fs_backend):
        """Deleting an absent identifier succeeds."""
        await fs_backend.delete("nothing")
        await fs_backend.delete("nothing.json")

    @pytest.mark.asyncio
    async def test_unrelated_files_ignored(self, fs_backend, tmp_cache_dir):
        """Files sharing a prefix with unknown extensions are not variants."""
        (tmp_cache_dir / "k.objectcachetest").write_bytes(b"x")
        (tmp_cache_dir / "k.tar.gz").write_bytes(b"x")

        assert await fs_backend.exists("k") is False
        assert await fs_backend.read("k") is None


class TestCacheSize:
    """Tests for get_cache_size."""

    def test_missing_directory(self, tmp_path):
        """A cache directory that doesn't exist has size zero."""
        assert FileSystemBackend(tmp_path / "none").get_cache_size() == 0

    @pytest.mark.asyncio
    async def test_counts_nested_files(self, fs_backend):
        """Sizes of all files, including nested ones, are summed."""
        await fs_backend.write("a.json", b"12345", "application/json")
        await fs_backend.write("nested/b", b"123", "application/octet-stream")

        assert fs_backend.get_cache_size() == 8
