"""Merge results and their JSON serialization."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import TextIO


@dataclass(frozen=True)
class MergeResult:
    """Merged coverage for one file, in base-commit line numbers."""

    file_exists: bool
    """True iff the file is present (possibly empty) at the base commit."""

    hit_counts: dict[int, int] | None = None
    """Base line number to accumulated hit count; ``None`` when the file is absent."""

    def __post_init__(self) -> None:
        if self.file_exists and self.hit_counts is None:
            object.__setattr__(self, "hit_counts", {})
        elif not self.file_exists and self.hit_counts is not None:
            raise ValueError("hit_counts must be None when the file does not exist")

    @property
    def instrumented_lines(self) -> int:
        """Number of base lines with any coverage information."""
        return len(self.hit_counts or {})

    @property
    def covered_lines(self) -> int:
        """Number of base lines executed at least once."""
        return sum(1 for count in (self.hit_counts or {}).values() if count > 0)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape, with line keys in ascending order."""
        if not self.file_exists:
            return {"FileExists": False}
        counts = self.hit_counts or {}
        return {
            "HitCounts": {str(line): counts[line] for line in sorted(counts)},
            "FileExists": True,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MergeResult:
        """Deserialize from the wire shape produced by :meth:`to_dict`."""
        if not data.get("FileExists", False):
            return cls(file_exists=False)
        raw_counts = data.get("HitCounts") or {}
        if not isinstance(raw_counts, dict):
            raise ValueError("HitCounts must be a JSON object keyed by line number")
        return cls(
            file_exists=True,
            hit_counts={int(line): int(count) for line, count in raw_counts.items()},
        )


@dataclass
class MergeSummary:
    """Totals over a complete merge output."""

    files: int = 0
    missing_files: int = 0
    instrumented_lines: int = 0
    covered_lines: int = 0

    @property
    def line_coverage_percentage(self) -> float:
        """Covered share of instrumented lines (0.0-100.0)."""
        if self.instrumented_lines == 0:
            return 0.0
        return (self.covered_lines / self.instrumented_lines) * 100.0


def summarize(results: Mapping[str, MergeResult]) -> MergeSummary:
    """Compute totals over a file-to-result mapping."""
    summary = MergeSummary(files=len(results))
    for result in results.values():
        if not result.file_exists:
            summary.missing_files += 1
            continue
        summary.instrumented_lines += result.instrumented_lines
        summary.covered_lines += result.covered_lines
    return summary


def results_to_dict(results: Mapping[str, MergeResult]) -> dict[str, Any]:
    """Convert a file-to-result mapping to plain data, files sorted by path."""
    return {path: results[path].to_dict() for path in sorted(results)}


def results_to_json(results: Mapping[str, MergeResult]) -> str:
    """Render a merge output as JSON.

    Output is deterministic: files and line numbers are emitted in sorted
    order, so identical results always produce identical text.
    """
    return json.dumps(results_to_dict(results), indent=2) + "\n"


def dump_results(results: Mapping[str, MergeResult], stream: TextIO) -> None:
    """Write a merge output as JSON to *stream*."""
    stream.write(results_to_json(results))


def load_results(stream: TextIO) -> dict[str, MergeResult]:
    """Read a merge output previously written by :func:`dump_results`."""
    data = json.load(stream)
    if not isinstance(data, dict):
        raise ValueError("merge output must be a JSON object keyed by file path")
    results: dict[str, MergeResult] = {}
    for path, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"entry for {path!r} must be a JSON object")
        results[path] = MergeResult.from_dict(entry)
    return results
