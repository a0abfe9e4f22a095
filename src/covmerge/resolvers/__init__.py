"""File-content resolution backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from covmerge.resolvers.base import FileVersionResolver, FileVersions, ResolutionError
from covmerge.resolvers.fixture import FixtureResolver
from covmerge.resolvers.git import GitResolver

if TYPE_CHECKING:
    from pathlib import Path

RESOLVER_NAMES = ("git", "fixture")


def create_resolver(
    name: str,
    workdir: Path,
    *,
    skip_checkout: bool = False,
    git_timeout: float = 600.0,
) -> FileVersionResolver:
    """Build the resolver backend for one merge run.

    ``skip_checkout`` forces the fixture backend regardless of *name*.

    Raises:
        ValueError: If *name* is not a known backend.
    """
    if skip_checkout or name == "fixture":
        return FixtureResolver(workdir)
    if name == "git":
        return GitResolver(workdir, timeout=git_timeout)
    raise ValueError(f"Unknown resolver {name!r}; expected one of {', '.join(RESOLVER_NAMES)}")


__all__ = [
    "RESOLVER_NAMES",
    "FileVersionResolver",
    "FileVersions",
    "FixtureResolver",
    "GitResolver",
    "ResolutionError",
    "create_resolver",
]
