"""Tests for the persisted checksum cache."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from nassync.core.hashing import compute_file_hash
from nassync.sync.cache import CacheEntry, ChecksumCache, load_entries, parse_line


class TestParseLine:
    """Tests for parse_line."""

    def test_parses_record(self) -> None:
        """Should split path, fingerprint and mtime."""
        parsed = parse_line("/data/a.txt|abc123|1700000000\n")
        assert parsed == ("/data/a.txt", CacheEntry(fingerprint="abc123", mtime=1700000000))

    def test_path_with_separator(self) -> None:
        """Paths containing | should survive (split from the right)."""
        parsed = parse_line("/data/a|b.txt|abc123|42")
        assert parsed is not None
        assert parsed[0] == "/data/a|b.txt"
        assert parsed[1].mtime == 42

    @pytest.mark.parametrize(
        "line",
        ["garbage", "/data/a.txt|abc", "/data/a.txt|abc|notanumber", "|abc|1", "/a||1"],
    )
    def test_malformed_lines(self, line: str) -> None:
        """Should return None for lines that do not parse."""
        assert parse_line(line) is None


class TestLoadEntries:
    """Tests for load_entries."""

    def test_missing_file_gives_empty(self, tmp_path: Path) -> None:
        """A missing cache file is an empty cache."""
        assert load_entries(tmp_path / "absent.cache") == {}

    def test_skips_malformed_lines(self, tmp_path: Path) -> None:
        """Malformed and blank lines should be ignored."""
        path = tmp_path / "checksums.cache"
        path.write_text("/a.txt|fp1|10\nnot a record\n\n/b.txt|fp2|20\n/c.txt|fp3|x\n")

        entries = load_entries(path)

        assert set(entries) == {"/a.txt", "/b.txt"}
        assert entries["/b.txt"] == CacheEntry("fp2", 20)


class TestChecksumCache:
    """Tests for ChecksumCache."""

    def test_lookup_valid_entry(self) -> None:
        """Lookup should return the fingerprint when mtime matches."""
        cache = ChecksumCache()
        cache.update("/data/a.txt", "fp", 100)
        assert cache.lookup("/data/a.txt", 100) == "fp"

    def test_lookup_stale_entry(self) -> None:
        """An entry computed against another mtime is absent."""
        cache = ChecksumCache()
        cache.update("/data/a.txt", "fp", 100)
        assert cache.lookup("/data/a.txt", 101) is None

    def test_lookup_missing(self) -> None:
        """Unknown paths are absent."""
        assert ChecksumCache().lookup("/nowhere", 1) is None

    def test_update_overwrites(self) -> None:
        """Last write wins."""
        cache = ChecksumCache()
        cache.update("/a", "old", 1)
        cache.update("/a", "new", 2)
        assert len(cache) == 1
        assert cache.lookup("/a", 2) == "new"

    def test_fingerprint_computes_and_caches(self, tmp_path: Path) -> None:
        """fingerprint() should hash the file once and reuse the result."""
        file_path = tmp_path / "a.txt"
        file_path.write_bytes(b"hello world")
        cache = ChecksumCache()

        first = cache.fingerprint(file_path)
        assert first == compute_file_hash(file_path)
        assert file_path in cache

        with patch("nassync.sync.cache.compute_file_hash") as mock_hash:
            assert cache.fingerprint(file_path) == first
            mock_hash.assert_not_called()

    def test_fingerprint_recomputes_after_modification(self, tmp_path: Path) -> None:
        """A changed mtime should invalidate the cached fingerprint."""
        file_path = tmp_path / "a.txt"
        file_path.write_bytes(b"version 1")
        cache = ChecksumCache()
        first = cache.fingerprint(file_path)

        file_path.write_bytes(b"version 2")
        stat = file_path.stat()
        os.utime(file_path, (stat.st_atime, stat.st_mtime + 10))

        second = cache.fingerprint(file_path)
        assert second != first
        assert second == compute_file_hash(file_path)

    def test_save_and_load(self, tmp_path: Path) -> None:
        """Saved entries should be loaded back unchanged."""
        path = tmp_path / "state" / "checksums.cache"
        cache = ChecksumCache()
        cache.update("/data/a.txt", "fp1", 10)
        cache.update("/data/with|pipe.txt", "fp2", 20)

        cache.save(path)
        loaded = ChecksumCache.load(path)

        assert loaded.entries() == cache.entries()

    def test_undecodable_name_round_trips(self, tmp_path: Path) -> None:
        """A path that is not valid UTF-8 is saved as its raw bytes and loads back."""
        path = tmp_path / "checksums.cache"
        name = "/data/caf\udce9.txt"
        cache = ChecksumCache()
        cache.update(name, "fp", 5)

        cache.save(path)

        assert b"/data/caf\xe9.txt|fp|5" in path.read_bytes()
        assert ChecksumCache.load(path).lookup(name, 5) == "fp"

    def test_save_leaves_no_temp_files(self, tmp_path: Path) -> None:
        """Only the cache file should remain after a save."""
        path = tmp_path / "checksums.cache"
        cache = ChecksumCache()
        cache.update("/a", "fp", 1)
        cache.save(path)
        cache.save(path)

        assert [p.name for p in tmp_path.iterdir()] == ["checksums.cache"]

    def test_failed_save_keeps_previous_file(self, tmp_path: Path) -> None:
        """An interrupted save must not touch the existing cache."""
        path = tmp_path / "checksums.cache"
        path.write_text("/a|old|1\n")
        cache = ChecksumCache()
        cache.update("/a", "new", 2)

        with patch("nassync.sync.cache.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                cache.save(path)

        assert path.read_text() == "/a|old|1\n"
        assert [p.name for p in tmp_path.iterdir()] == ["checksums.cache"]

    def test_load_none_gives_empty_cache(self) -> None:
        """Loading without a path gives an empty in-memory cache."""
        assert len(ChecksumCache.load(None)) == 0
