"""Data models for covmerge."""

from covmerge.models.records import (
    INPUT_COLUMNS,
    UNKNOWN_END,
    RecordParseError,
    RepoCommit,
    SampleRecord,
    parse_row,
)
from covmerge.models.result import (
    MergeResult,
    MergeSummary,
    dump_results,
    load_results,
    results_to_json,
    summarize,
)

__all__ = [
    "INPUT_COLUMNS",
    "UNKNOWN_END",
    "MergeResult",
    "MergeSummary",
    "RecordParseError",
    "RepoCommit",
    "SampleRecord",
    "dump_results",
    "load_results",
    "parse_row",
    "results_to_json",
    "summarize",
]
