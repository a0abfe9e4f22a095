"""Coverage sample records and the commit identifiers they refer to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

UNKNOWN_END = -1
"""End-line sentinel meaning "same as the start line"."""

INPUT_COLUMNS: tuple[str, ...] = (
    "timestamp",
    "version",
    "fuzzing_minutes",
    "arch",
    "build_id",
    "manager",
    "kernel_repo",
    "kernel_branch",
    "kernel_commit",
    "file_path",
    "func_name",
    "sl",
    "sc",
    "el",
    "ec",
    "hit_count",
    "inline",
    "pc",
)
"""Column names of the tabular coverage export, in export order."""

_TRUE_VALUES = frozenset({"true", "1", "yes"})
_FALSE_VALUES = frozenset({"false", "0", "no", ""})


class RecordParseError(Exception):
    """Raised when an input row does not satisfy the record schema."""

    def __init__(self, message: str, line_no: int | None = None) -> None:
        """Initialize with a description and the offending input row.

        Args:
            message: What is wrong with the row.
            line_no: 1-based row number in the input stream, if known.
        """
        if line_no is not None:
            message = f"row {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


@dataclass(frozen=True, slots=True)
class RepoCommit:
    """One content version of a whole source tree."""

    repo: str
    """Repository URL."""

    commit: str
    """Commit identifier within the repository."""

    def __str__(self) -> str:
        return f"{self.repo}@{self.commit}"


@dataclass(frozen=True, slots=True)
class SampleRecord:
    """A single parsed coverage observation.

    Only ``file_path``, the line range, ``hit_count`` and the repository and
    commit take part in merging.  The remaining fields are carried through
    as they appeared in the input.
    """

    file_path: str
    start_line: int
    end_line: int
    hit_count: int
    repo: str
    commit: str
    branch: str = ""
    start_col: int = 0
    end_col: int = UNKNOWN_END
    func_name: str = ""
    timestamp: str = ""
    version: str = ""
    fuzzing_minutes: str = ""
    arch: str = ""
    build_id: str = ""
    manager: str = ""
    inline: bool = False
    pc: str = ""

    @property
    def repo_commit(self) -> RepoCommit:
        """The content version this sample was recorded against."""
        return RepoCommit(repo=self.repo, commit=self.commit)

    @property
    def last_line(self) -> int:
        """Last covered line, resolving the unknown-end sentinel."""
        if self.end_line == UNKNOWN_END:
            return self.start_line
        return self.end_line

    def lines(self) -> Iterator[int]:
        """Yield every line number in the sample's range."""
        yield from range(self.start_line, self.last_line + 1)


def _require(row: Mapping[str, str | None], column: str, line_no: int) -> str:
    value = row.get(column)
    if value is None:
        raise RecordParseError(f"missing column {column!r}", line_no)
    return value.strip()


def _parse_int(row: Mapping[str, str | None], column: str, line_no: int) -> int:
    raw = _require(row, column, line_no)
    try:
        return int(raw)
    except ValueError:
        raise RecordParseError(f"column {column!r} is not an integer: {raw!r}", line_no) from None


def _parse_bool(row: Mapping[str, str | None], column: str, line_no: int) -> bool:
    raw = _require(row, column, line_no).lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise RecordParseError(f"column {column!r} is not a boolean: {raw!r}", line_no)


def parse_row(row: Mapping[str, str | None], *, line_no: int) -> SampleRecord:
    """Convert one raw input row into a :class:`SampleRecord`.

    Args:
        row: Column name to raw text value, as produced by ``csv.DictReader``.
        line_no: 1-based row number, used in error messages.

    Returns:
        The parsed record.

    Raises:
        RecordParseError: If a column is missing or malformed, or the record
            violates the line-range or hit-count invariants.
    """
    file_path = _require(row, "file_path", line_no)
    if not file_path:
        raise RecordParseError("empty file_path", line_no)

    repo = _require(row, "kernel_repo", line_no)
    commit = _require(row, "kernel_commit", line_no)
    if not repo or not commit:
        raise RecordParseError("repository and commit must not be empty", line_no)

    start_line = _parse_int(row, "sl", line_no)
    end_line = _parse_int(row, "el", line_no)
    hit_count = _parse_int(row, "hit_count", line_no)

    if start_line < 1:
        raise RecordParseError(f"start line must be positive, got {start_line}", line_no)
    if end_line != UNKNOWN_END and end_line < start_line:
        raise RecordParseError(
            f"end line {end_line} precedes start line {start_line}",
            line_no,
        )
    if hit_count < 0:
        raise RecordParseError(f"negative hit count {hit_count}", line_no)

    return SampleRecord(
        file_path=file_path,
        start_line=start_line,
        end_line=end_line,
        hit_count=hit_count,
        repo=repo,
        commit=commit,
        branch=_require(row, "kernel_branch", line_no),
        start_col=_parse_int(row, "sc", line_no),
        end_col=_parse_int(row, "ec", line_no),
        func_name=_require(row, "func_name", line_no),
        timestamp=_require(row, "timestamp", line_no),
        version=_require(row, "version", line_no),
        fuzzing_minutes=_require(row, "fuzzing_minutes", line_no),
        arch=_require(row, "arch", line_no),
        build_id=_require(row, "build_id", line_no),
        manager=_require(row, "manager", line_no),
        inline=_parse_bool(row, "inline", line_no),
        pc=_require(row, "pc", line_no),
    )
