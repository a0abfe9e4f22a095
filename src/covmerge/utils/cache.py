"""Run-scoped caches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from covmerge.models.records import RepoCommit

_K = TypeVar("_K")
_V = TypeVar("_V")


@dataclass(slots=True)
class _Entry(Generic[_V]):
    """A single cached value."""

    value: _V


class MemoryCache(Generic[_K, _V]):
    """In-memory cache that can hold ``None`` as a real value.

    Membership (``key in cache``) distinguishes "never stored" from a stored
    ``None``.  ``hits`` and ``misses`` count lookups for the run summary.
    """

    def __init__(self) -> None:
        self._store: dict[_K, _Entry[_V]] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def get(self, key: _K) -> _V | None:
        """Return the cached value, or ``None`` if missing."""
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def put(self, key: _K, value: _V) -> None:
        """Store a value, replacing any previous one."""
        self._store[key] = _Entry(value=value)

    def clear(self) -> None:
        """Remove all entries."""
        self._store.clear()

    @property
    def size(self) -> int:
        """Number of entries currently held."""
        return len(self._store)


class ContentCache(MemoryCache[tuple[RepoCommit, str], bytes | None]):
    """File contents keyed by ``(RepoCommit, file path)``.

    A stored ``None`` records that the file is absent at that commit, so
    absence is not looked up twice either.  Lives for one merge run.
    """

    def lookup(self, repo_commit: RepoCommit, file_path: str) -> tuple[bool, bytes | None]:
        """Return ``(found, content)`` for one commit and path."""
        key = (repo_commit, file_path)
        if key not in self:
            self.misses += 1
            return False, None
        return True, self.get(key)

    def store(self, repo_commit: RepoCommit, file_path: str, content: bytes | None) -> None:
        """Record the content (or absence) of one file at one commit."""
        self.put((repo_commit, file_path), content)
