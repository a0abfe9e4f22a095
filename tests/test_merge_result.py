"""Tests for covmerge.models.result."""

from __future__ import annotations

import io
import json

import pytest

from covmerge.models.result import (
    MergeResult,
    MergeSummary,
    dump_results,
    load_results,
    results_to_json,
    summarize,
)


class TestMergeResult:
    def test_existing_file_defaults_to_empty_counts(self) -> None:
        assert MergeResult(file_exists=True).hit_counts == {}

    def test_missing_file_has_no_counts(self) -> None:
        assert MergeResult(file_exists=False).hit_counts is None

    def test_missing_file_rejects_counts(self) -> None:
        with pytest.raises(ValueError, match="must be None"):
            MergeResult(file_exists=False, hit_counts={1: 1})

    def test_line_counters(self) -> None:
        result = MergeResult(file_exists=True, hit_counts={1: 0, 2: 3, 5: 1})
        assert result.instrumented_lines == 3
        assert result.covered_lines == 2

    def test_to_dict_missing(self) -> None:
        assert MergeResult(file_exists=False).to_dict() == {"FileExists": False}

    def test_to_dict_empty(self) -> None:
        assert MergeResult(file_exists=True).to_dict() == {"HitCounts": {}, "FileExists": True}

    def test_to_dict_sorts_numerically(self) -> None:
        result = MergeResult(file_exists=True, hit_counts={10: 1, 2: 0, 3: 4})
        assert list(result.to_dict()["HitCounts"]) == ["2", "3", "10"]

    def test_from_dict(self) -> None:
        data = {"HitCounts": {"3": 1, "12": 0}, "FileExists": True}
        assert MergeResult.from_dict(data) == MergeResult(file_exists=True, hit_counts={3: 1, 12: 0})

    def test_from_dict_missing(self) -> None:
        assert MergeResult.from_dict({"FileExists": False}) == MergeResult(file_exists=False)


class TestSerialization:
    def test_wire_shape(self) -> None:
        results = {
            "b.c": MergeResult(file_exists=False),
            "a.c": MergeResult(file_exists=True, hit_counts={3: 1}),
        }
        data = json.loads(results_to_json(results))
        assert data == {
            "a.c": {"HitCounts": {"3": 1}, "FileExists": True},
            "b.c": {"FileExists": False},
        }

    def test_output_is_sorted_and_stable(self) -> None:
        one = {"z.c": MergeResult(True, {2: 1, 1: 1}), "a.c": MergeResult(False)}
        two = {"a.c": MergeResult(False), "z.c": MergeResult(True, {1: 1, 2: 1})}
        text = results_to_json(one)
        assert text == results_to_json(two)
        assert text.index('"a.c"') < text.index('"z.c"')
        assert text.endswith("\n")

    def test_dump_then_load(self) -> None:
        results = {
            "kernel/fork.c": MergeResult(file_exists=True, hit_counts={1: 0, 7: 12}),
            "drivers/gone.c": MergeResult(file_exists=False),
        }
        buf = io.StringIO()
        dump_results(results, buf)
        buf.seek(0)
        assert load_results(buf) == results

    def test_load_rejects_non_object(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            load_results(io.StringIO("[1, 2]"))

    def test_load_rejects_non_object_entry(self) -> None:
        with pytest.raises(ValueError, match="entry for 'a.c' must be a JSON object"):
            load_results(io.StringIO('{"a.c": 1}'))

    def test_load_rejects_non_object_hit_counts(self) -> None:
        with pytest.raises(ValueError, match="HitCounts must be a JSON object"):
            load_results(io.StringIO('{"a.c": {"FileExists": true, "HitCounts": [1]}}'))


class TestSummarize:
    def test_totals(self) -> None:
        summary = summarize(
            {
                "a.c": MergeResult(True, {1: 1, 2: 0}),
                "b.c": MergeResult(True, {1: 5}),
                "c.c": MergeResult(False),
            }
        )
        assert summary == MergeSummary(files=3, missing_files=1, instrumented_lines=3, covered_lines=2)
        assert summary.line_coverage_percentage == pytest.approx(200 / 3)

    def test_empty(self) -> None:
        summary = summarize({})
        assert summary.files == 0
        assert summary.line_coverage_percentage == 0.0
