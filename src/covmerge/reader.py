"""Streaming reader for the tabular coverage export."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from covmerge.models.records import INPUT_COLUMNS, RecordParseError, SampleRecord, parse_row

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import TextIO

logger = logging.getLogger(__name__)

_REQUIRED_COLUMNS = frozenset(INPUT_COLUMNS)


def _unreadable(exc: csv.Error | UnicodeDecodeError, line_no: int) -> RecordParseError:
    if isinstance(exc, UnicodeDecodeError):
        return RecordParseError("input is not valid UTF-8 text", line_no)
    return RecordParseError(f"malformed CSV: {exc}", line_no)


def iter_samples(stream: TextIO) -> Iterator[SampleRecord]:
    """Parse a delimited-text stream into sample records, one row at a time.

    The first row must be a header naming every column in
    :data:`~covmerge.models.records.INPUT_COLUMNS` (extra columns are
    ignored).  Rows are parsed lazily; the first malformed row raises and
    nothing after it is read.

    Raises:
        RecordParseError: On a missing header column, a malformed row, or
            input that is not UTF-8 CSV.
    """
    reader = csv.DictReader(stream)
    try:
        header = set(reader.fieldnames or ())
    except (csv.Error, UnicodeDecodeError) as exc:
        raise _unreadable(exc, 1) from exc
    if not header:
        logger.info("Input stream is empty")
        return
    missing = sorted(_REQUIRED_COLUMNS - {name.strip() for name in header})
    if missing:
        raise RecordParseError(f"input header is missing columns: {', '.join(missing)}", 1)

    count = 0
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except (csv.Error, UnicodeDecodeError) as exc:
            # A decode error fires before the offending line is counted.
            line_no = reader.line_num + isinstance(exc, UnicodeDecodeError)
            raise _unreadable(exc, line_no) from exc
        if None in row:
            raise RecordParseError("row has more fields than the header", reader.line_num)
        clean = {(key or "").strip(): value for key, value in row.items()}
        yield parse_row(clean, line_no=reader.line_num)
        count += 1
    logger.info("Read %d coverage records", count)


def read_samples(path: str | Path) -> list[SampleRecord]:
    """Read every sample record from a file on disk."""
    with Path(path).open(encoding="utf-8", newline="") as fh:
        return list(iter_samples(fh))
