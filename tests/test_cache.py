"""Tests for covmerge.utils.cache."""

from __future__ import annotations

from covmerge.models.records import RepoCommit
from covmerge.utils.cache import ContentCache, MemoryCache

RC1 = RepoCommit("git://repo", "commit1")
RC2 = RepoCommit("git://repo", "commit2")


class TestMemoryCache:
    def test_put_and_get(self) -> None:
        cache: MemoryCache[str, str] = MemoryCache()
        cache.put("k1", "v1")
        assert cache.get("k1") == "v1"

    def test_get_missing_returns_none(self) -> None:
        cache: MemoryCache[str, str] = MemoryCache()
        assert cache.get("missing") is None
        assert cache.misses == 1

    def test_stored_none_is_a_member(self) -> None:
        cache: MemoryCache[str, str | None] = MemoryCache()
        cache.put("k1", None)
        assert "k1" in cache
        assert "k2" not in cache

    def test_put_overwrites_existing(self) -> None:
        cache: MemoryCache[str, str] = MemoryCache()
        cache.put("k1", "old")
        cache.put("k1", "new")
        assert cache.get("k1") == "new"
        assert cache.size == 1

    def test_clear(self) -> None:
        cache: MemoryCache[str, str] = MemoryCache()
        cache.put("k1", "v1")
        cache.put("k2", "v2")
        cache.clear()
        assert cache.size == 0

    def test_hit_counter(self) -> None:
        cache: MemoryCache[str, str] = MemoryCache()
        cache.put("k1", "v1")
        cache.get("k1")
        cache.get("k1")
        assert cache.hits == 2


class TestContentCache:
    def test_lookup_miss(self) -> None:
        cache = ContentCache()
        assert cache.lookup(RC1, "a.c") == (False, None)
        assert cache.misses == 1

    def test_store_and_lookup(self) -> None:
        cache = ContentCache()
        cache.store(RC1, "a.c", b"int x;\n")
        assert cache.lookup(RC1, "a.c") == (True, b"int x;\n")

    def test_absence_is_remembered(self) -> None:
        cache = ContentCache()
        cache.store(RC1, "gone.c", None)
        assert cache.lookup(RC1, "gone.c") == (True, None)

    def test_empty_file_differs_from_absent(self) -> None:
        cache = ContentCache()
        cache.store(RC1, "empty.c", b"")
        assert cache.lookup(RC1, "empty.c") == (True, b"")

    def test_keyed_by_commit_and_path(self) -> None:
        cache = ContentCache()
        cache.store(RC1, "a.c", b"one")
        cache.store(RC2, "a.c", b"two")
        assert cache.lookup(RC1, "a.c") == (True, b"one")
        assert cache.lookup(RC2, "a.c") == (True, b"two")
        assert cache.lookup(RC1, "b.c") == (False, None)
