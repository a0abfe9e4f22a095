"""Pre-staged file contents, used instead of real checkouts."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from covmerge.resolvers.base import FileVersionResolver, FileVersions, ResolutionError

if TYPE_CHECKING:
    from covmerge.models.records import RepoCommit

logger = logging.getLogger(__name__)


class FixtureResolver(FileVersionResolver):
    """Reads ``<workdir>/repos/<commit>/<file_path>``.

    A missing file means the file is absent at that commit.  The repository
    URL is not part of the path, so fixtures for one commit id are shared by
    every repository that references it.
    """

    def __init__(self, workdir: Path) -> None:
        super().__init__()
        self._root = Path(workdir) / "repos"

    @property
    def name(self) -> str:
        return "fixture"

    def path_for(self, repo_commit: RepoCommit, file_path: str) -> Path:
        """Location of the staged copy of *file_path* at *repo_commit*."""
        commit_root = (self._root / repo_commit.commit).resolve()
        target = (commit_root / file_path).resolve()
        if not target.is_relative_to(commit_root):
            raise ResolutionError(f"file path escapes the fixture tree: {file_path!r}")
        return target

    def _read(self, path: Path) -> bytes | None:
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ResolutionError(f"failed to read {path}: {exc}") from exc

    async def _fetch(self, file_path: str, repo_commits: list[RepoCommit]) -> FileVersions:
        versions: FileVersions = {}
        for repo_commit in repo_commits:
            content = await asyncio.to_thread(self._read, self.path_for(repo_commit, file_path))
            if content is None:
                logger.debug("%s not staged for %s", file_path, repo_commit)
                continue
            versions[repo_commit] = content
        return versions
