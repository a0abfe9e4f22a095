"""Git-backed resolver: materializes commits as worktrees under the workdir.

Layout under ``workdir``::

    clones/<repo-key>/                 one clone per repository
    checkouts/<repo-key>/<commit>/     one detached worktree per commit

Both survive the run, so a later run over the same workdir reuses them.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from covmerge.resolvers.base import FileVersionResolver, FileVersions, ResolutionError
from covmerge.utils.subprocess_runner import SubprocessError, SubprocessResult, run_subprocess

if TYPE_CHECKING:
    from covmerge.models.records import RepoCommit

logger = logging.getLogger(__name__)

_GIT_REF_MAX_LENGTH = 255
_GIT_REF_UNSAFE = re.compile(r"[\x00-\x1f\x7f \~\^:\?\*\[\]\\;|&$`()<>{}!#'\"]")
_REPO_URL_UNSAFE = re.compile(r"[\x00-\x20\x7f]")
_REPO_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

# Never wait on a credential prompt for a clone or fetch.
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def _git_executable() -> str:
    """Resolve the full path to the ``git`` executable."""
    return shutil.which("git") or "git"


def validate_commit(commit: str) -> None:
    """Reject commit ids that could be mistaken for options or revision syntax.

    Raises:
        ResolutionError: If the commit id is unsafe.
    """
    if not commit:
        raise ResolutionError("Commit id must not be empty")
    if len(commit) > _GIT_REF_MAX_LENGTH:
        raise ResolutionError(f"Commit id exceeds {_GIT_REF_MAX_LENGTH} characters")
    if _GIT_REF_UNSAFE.search(commit):
        raise ResolutionError(f"Commit id contains unsafe characters: {commit!r}")
    if commit.startswith("-"):
        raise ResolutionError("Commit id must not start with a dash")
    if ".." in commit:
        raise ResolutionError("Commit id must not contain '..'")


def validate_repo_url(repo: str) -> None:
    """Reject repository URLs that git could parse as options.

    Raises:
        ResolutionError: If the URL is unsafe.
    """
    if not repo:
        raise ResolutionError("Repository URL must not be empty")
    if repo.startswith("-"):
        raise ResolutionError("Repository URL must not start with a dash")
    if _REPO_URL_UNSAFE.search(repo):
        raise ResolutionError(f"Repository URL contains whitespace or control characters: {repo!r}")


def repo_key(repo: str) -> str:
    """Stable directory name for a repository URL."""
    tail = repo.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git") or "repo"
    digest = hashlib.sha256(repo.encode("utf-8")).hexdigest()[:12]
    return f"{_REPO_NAME_RE.sub('_', tail)}-{digest}"


class GitResolver(FileVersionResolver):
    """Resolves file contents from real git checkouts.

    Every distinct repository is cloned once and every distinct commit is
    checked out once per workdir.  Concurrent requests for a commit that is
    not materialized yet wait on a per-commit lock, so the checkout happens
    exactly once.  Mutating git commands on one clone (fetch, worktree add)
    are serialized by a per-repository lock.
    """

    def __init__(self, workdir: Path, *, timeout: float = 600.0) -> None:
        super().__init__()
        self._workdir = Path(workdir)
        self._timeout = timeout
        self._repo_locks: dict[str, asyncio.Lock] = {}
        self._commit_locks: dict[RepoCommit, asyncio.Lock] = {}
        self._clones: dict[str, Path] = {}
        self._checkouts: dict[RepoCommit, Path] = {}

    @property
    def name(self) -> str:
        return "git"

    @property
    def checkouts(self) -> dict[RepoCommit, Path]:
        """Commits materialized so far in this run."""
        return dict(self._checkouts)

    async def _git(self, *args: str, cwd: Path) -> SubprocessResult:
        try:
            result = await run_subprocess(
                [_git_executable(), *args],
                cwd=cwd,
                timeout=self._timeout,
                env=_GIT_ENV,
                check=True,
            )
        except SubprocessError as exc:
            stderr = exc.result.stderr.strip()
            raise ResolutionError(f"git {args[0]} failed in {cwd}: {stderr or exc}") from exc
        return result

    async def _git_ok(self, *args: str, cwd: Path) -> bool:
        """Run a git query and report whether it exited successfully."""
        try:
            result = await run_subprocess(
                [_git_executable(), *args], cwd=cwd, timeout=self._timeout, env=_GIT_ENV
            )
        except SubprocessError as exc:
            raise ResolutionError(f"git {args[0]} could not be run: {exc}") from exc
        return result.success

    async def _ensure_clone(self, repo: str) -> Path:
        """Clone *repo* into the workdir unless a clone already exists."""
        lock = self._repo_locks.setdefault(repo, asyncio.Lock())
        async with lock:
            cached = self._clones.get(repo)
            if cached is not None:
                return cached

            validate_repo_url(repo)
            clone_dir = self._workdir / "clones" / repo_key(repo)
            if not (clone_dir / ".git").exists():
                clone_dir.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Cloning %s into %s", repo, clone_dir)
                await self._git("clone", "--no-checkout", "--", repo, str(clone_dir), cwd=self._workdir)
            self._clones[repo] = clone_dir
            return clone_dir

    async def _has_commit(self, clone_dir: Path, commit: str) -> bool:
        return await self._git_ok("cat-file", "-e", f"{commit}^{{commit}}", cwd=clone_dir)

    async def _checkout_matches(self, checkout_dir: Path, commit: str) -> bool:
        if not (checkout_dir / ".git").exists():
            return False
        try:
            head = await self._git("rev-parse", "HEAD", cwd=checkout_dir)
        except ResolutionError:
            return False
        return head.text.strip().startswith(commit)

    async def ensure_checkout(self, repo_commit: RepoCommit) -> Path:
        """Materialize *repo_commit* as a worktree and return its directory."""
        lock = self._commit_locks.setdefault(repo_commit, asyncio.Lock())
        async with lock:
            cached = self._checkouts.get(repo_commit)
            if cached is not None:
                return cached

            validate_commit(repo_commit.commit)
            clone_dir = await self._ensure_clone(repo_commit.repo)
            checkout_dir = (
                self._workdir / "checkouts" / repo_key(repo_commit.repo) / repo_commit.commit
            )

            if await self._checkout_matches(checkout_dir, repo_commit.commit):
                logger.debug("Reusing checkout of %s at %s", repo_commit, checkout_dir)
            else:
                await self._materialize(clone_dir, checkout_dir, repo_commit)

            self._checkouts[repo_commit] = checkout_dir
            return checkout_dir

    async def _materialize(self, clone_dir: Path, checkout_dir: Path, repo_commit: RepoCommit) -> None:
        repo_lock = self._repo_locks.setdefault(repo_commit.repo, asyncio.Lock())
        async with repo_lock:
            if not await self._has_commit(clone_dir, repo_commit.commit):
                logger.info("Fetching %s", repo_commit)
                await self._git("fetch", "--quiet", "origin", repo_commit.commit, cwd=clone_dir)
            if checkout_dir.exists():
                logger.debug("Replacing stale checkout at %s", checkout_dir)
                await asyncio.to_thread(shutil.rmtree, checkout_dir)
                await self._git("worktree", "prune", cwd=clone_dir)
            checkout_dir.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Checking out %s", repo_commit)
            await self._git(
                "worktree",
                "add",
                "--detach",
                "--force",
                str(checkout_dir),
                repo_commit.commit,
                cwd=clone_dir,
            )

    @staticmethod
    def _read(checkout_dir: Path, file_path: str) -> bytes | None:
        root = checkout_dir.resolve()
        target = (root / file_path).resolve()
        if not target.is_relative_to(root):
            raise ResolutionError(f"file path escapes the checkout: {file_path!r}")
        if not target.is_file():
            return None
        try:
            return target.read_bytes()
        except OSError as exc:
            raise ResolutionError(f"failed to read {target}: {exc}") from exc

    async def _fetch(self, file_path: str, repo_commits: list[RepoCommit]) -> FileVersions:
        checkout_dirs = await asyncio.gather(*(self.ensure_checkout(rc) for rc in repo_commits))
        versions: FileVersions = {}
        for repo_commit, checkout_dir in zip(repo_commits, checkout_dirs, strict=True):
            content = await asyncio.to_thread(self._read, checkout_dir, file_path)
            if content is not None:
                versions[repo_commit] = content
        return versions
