"""Fold one file's samples into base-commit hit counts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covmerge.correlator import LineMapping, correlate, split_lines
from covmerge.models.result import MergeResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from covmerge.models.records import RepoCommit, SampleRecord
    from covmerge.resolvers.base import FileVersions

logger = logging.getLogger(__name__)


def _commit_mappings(
    file_path: str,
    commits: Iterable[RepoCommit],
    versions: FileVersions,
    base: RepoCommit,
    base_lines: list[str],
) -> dict[RepoCommit, LineMapping]:
    """Correlate every referenced commit against the base, once per commit."""
    identity = {n: n for n in range(1, len(base_lines) + 1)}
    mappings: dict[RepoCommit, LineMapping] = {}
    for repo_commit in commits:
        if repo_commit in mappings:
            continue
        if repo_commit == base:
            mappings[repo_commit] = identity
            continue
        content = versions.get(repo_commit)
        if content is None:
            logger.debug("%s absent at %s; its samples are dropped", file_path, repo_commit)
            mappings[repo_commit] = {}
            continue
        lines = split_lines(content)
        if lines is None:
            logger.warning("%s at %s is not text; its samples are dropped", file_path, repo_commit)
            mappings[repo_commit] = {}
            continue
        mappings[repo_commit] = correlate(lines, base_lines)
    return mappings


def aggregate_file(
    file_path: str,
    samples: list[SampleRecord],
    versions: FileVersions,
    base: RepoCommit,
) -> MergeResult:
    """Merge every sample of one file into base-commit line numbers.

    Each line of a sample's ``[start, end]`` range is credited with the
    sample's full hit count.  A line that has no counterpart in the base
    version contributes nothing.  Counts landing on the same base line are
    summed, and zero counts still produce an entry.

    Args:
        file_path: Path of the file, used for logging.
        samples: All samples recorded for this file, from any commit.
        versions: Content of the file at the base commit and at every commit
            referenced by *samples*; a missing commit means the file is absent.
        base: The commit results are expressed in.

    Returns:
        ``MergeResult(file_exists=False)`` when the file is absent (or not
        text) at the base commit, otherwise the accumulated hit counts.
    """
    base_content = versions.get(base)
    if base_content is None:
        logger.debug("%s does not exist at base %s", file_path, base)
        return MergeResult(file_exists=False)
    base_lines = split_lines(base_content)
    if base_lines is None:
        logger.warning("%s at base %s is not text; reporting it as missing", file_path, base)
        return MergeResult(file_exists=False)

    mappings = _commit_mappings(
        file_path,
        (sample.repo_commit for sample in samples),
        versions,
        base,
        base_lines,
    )

    hit_counts: dict[int, int] = {}
    dropped = 0
    for sample in samples:
        mapping = mappings[sample.repo_commit]
        for line in sample.lines():
            base_line = mapping.get(line)
            if base_line is None:
                dropped += 1
                continue
            hit_counts[base_line] = hit_counts.get(base_line, 0) + sample.hit_count

    if dropped:
        logger.debug("%s: %d sampled line(s) have no counterpart at base", file_path, dropped)
    return MergeResult(file_exists=True, hit_counts=hit_counts)
