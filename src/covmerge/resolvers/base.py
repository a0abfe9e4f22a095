"""Base class for file-content resolution backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from covmerge.models.records import RepoCommit
from covmerge.utils.cache import ContentCache

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

FileVersions = dict[RepoCommit, bytes]
"""Content of one file per commit. A commit missing from the mapping means the
file does not exist at that commit; ``b""`` is an existing empty file."""


class ResolutionError(Exception):
    """Raised when a backend fails to produce file content (clone, checkout, I/O)."""


class FileVersionResolver(ABC):
    """Fetches the content of one file at several commits.

    Subclasses implement :meth:`_fetch`.  The public :meth:`resolve` serves
    pairs already seen in this run from the instance's cache and forwards
    only the rest, so every ``(commit, path)`` pair is fetched at most once
    for the lifetime of the resolver.  Create one resolver per merge run.
    """

    def __init__(self) -> None:
        self._cache = ContentCache()

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name used in configuration and logs."""

    async def resolve(self, file_path: str, repo_commits: Iterable[RepoCommit]) -> FileVersions:
        """Return the content of *file_path* at each of *repo_commits*.

        Commits at which the file does not exist are left out of the result.

        Raises:
            ResolutionError: If the backend fails for any commit.
        """
        versions: FileVersions = {}
        pending: list[RepoCommit] = []
        for repo_commit in dict.fromkeys(repo_commits):
            found, content = self._cache.lookup(repo_commit, file_path)
            if not found:
                pending.append(repo_commit)
            elif content is not None:
                versions[repo_commit] = content

        if pending:
            logger.debug(
                "%s: fetching %s at %d commit(s)",
                self.name,
                file_path,
                len(pending),
            )
            fetched = await self._fetch(file_path, pending)
            for repo_commit in pending:
                content = fetched.get(repo_commit)
                self._cache.store(repo_commit, file_path, content)
                if content is not None:
                    versions[repo_commit] = content
        return versions

    @abstractmethod
    async def _fetch(self, file_path: str, repo_commits: list[RepoCommit]) -> FileVersions:
        """Fetch *file_path* at each commit, bypassing the cache."""

    async def close(self) -> None:
        """Release backend resources at the end of a run.

        The base implementation logs how well the content cache did and
        drops the cached contents.
        """
        logger.debug(
            "%s: content cache held %d entries, served %d lookup(s), fetched %d",
            self.name,
            self._cache.size,
            self._cache.hits,
            self._cache.misses,
        )
        self._cache.clear()
