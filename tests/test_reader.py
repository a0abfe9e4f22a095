"""Tests for covmerge.reader."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest

from covmerge.models.records import INPUT_COLUMNS, RecordParseError
from covmerge.reader import iter_samples, read_samples

if TYPE_CHECKING:
    from pathlib import Path

HEADER = ",".join(INPUT_COLUMNS)


def _csv(*rows: str) -> str:
    return "\n".join((HEADER, *rows)) + "\n"


ROW_1 = "samp_time,1,360,arch,b1,ci-mock,git://repo,master,commit1,change_line.c,func1,2,0,2,-1,1,true,1"
ROW_2 = "samp_time,1,360,arch,b1,ci-mock,git://repo,master,commit2,add_line.c,func1,2,0,2,-1,1,true,1"


class TestIterSamples:
    def test_parses_rows_in_order(self) -> None:
        records = list(iter_samples(io.StringIO(_csv(ROW_1, ROW_2))))
        assert [r.file_path for r in records] == ["change_line.c", "add_line.c"]
        assert records[0].commit == "commit1"
        assert records[1].hit_count == 1

    def test_empty_stream(self) -> None:
        assert list(iter_samples(io.StringIO(""))) == []

    def test_header_only(self) -> None:
        assert list(iter_samples(io.StringIO(HEADER + "\n"))) == []

    def test_missing_header_column(self) -> None:
        header = ",".join(c for c in INPUT_COLUMNS if c != "hit_count")
        with pytest.raises(RecordParseError, match="row 1: .*hit_count"):
            list(iter_samples(io.StringIO(header + "\n")))

    def test_extra_header_columns_are_ignored(self) -> None:
        text = HEADER + ",extra\n" + ROW_1 + ",x\n"
        records = list(iter_samples(io.StringIO(text)))
        assert len(records) == 1

    def test_too_many_fields(self) -> None:
        with pytest.raises(RecordParseError, match="more fields"):
            list(iter_samples(io.StringIO(_csv(ROW_1 + ",surplus"))))

    def test_oversized_field_is_malformed_csv(self) -> None:
        row = ROW_1.replace("func1", "f" * 200_000)
        with pytest.raises(RecordParseError, match="row 2: malformed CSV"):
            list(iter_samples(io.StringIO(_csv(row))))

    def test_invalid_utf8(self) -> None:
        raw = _csv(ROW_1).encode().replace(b"change_line.c", b"caf\xff\xfe.c")
        stream = io.TextIOWrapper(io.BytesIO(raw), encoding="utf-8", newline="")
        with pytest.raises(RecordParseError, match="not valid UTF-8"):
            list(iter_samples(stream))

    def test_malformed_row_reports_row_number(self) -> None:
        bad = ROW_2.replace(",2,0,2,", ",two,0,2,")
        with pytest.raises(RecordParseError, match="row 3"):
            list(iter_samples(io.StringIO(_csv(ROW_1, bad))))

    def test_is_lazy(self) -> None:
        bad = ROW_2.replace(",1,true,", ",-1,true,")
        samples = iter_samples(io.StringIO(_csv(ROW_1, bad)))
        assert next(samples).file_path == "change_line.c"
        with pytest.raises(RecordParseError, match="negative hit count"):
            next(samples)

    def test_quoted_fields(self) -> None:
        row = ROW_1.replace("change_line.c", '"dir, with comma/a.c"')
        record = next(iter_samples(io.StringIO(_csv(row))))
        assert record.file_path == "dir, with comma/a.c"


def test_read_samples(tmp_path: Path) -> None:
    path = tmp_path / "samples.csv"
    path.write_text(_csv(ROW_1, ROW_2), encoding="utf-8")
    assert len(read_samples(path)) == 2
