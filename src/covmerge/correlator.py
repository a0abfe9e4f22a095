"""Line correlation between two versions of a file.

Lines are correlated through a longest-common-subsequence alignment of the
two line sequences: a line of version A maps to a line of version B iff the
pair is part of the alignment.  Inserted, deleted and edited lines map to
nothing.

When several maximum alignments exist (repeated lines), the one chosen is
the one whose matched B line numbers, read from the top, are
lexicographically smallest; among those, the one whose matched A line
numbers are lexicographically smallest.  The alignment is built by a
forward walk that at every step takes the pair with the smallest B index,
then the smallest A index, that can still be extended to a maximum
alignment.  The walk consults suffix LCS lengths kept only for a diagonal
band as wide as the edit distance, so similar files correlate in close to
linear time.
"""

from __future__ import annotations

import logging
from array import array
from bisect import bisect_left

logger = logging.getLogger(__name__)

LineMapping = dict[int, int]
"""1-based line number in version A to 1-based line number in version B."""


def split_lines(content: bytes) -> list[str] | None:
    """Split file content into lines, or return ``None`` for non-text content.

    Content is text if it is valid UTF-8 without NUL bytes.  Lines are split
    on ``\\n`` only, so line numbers agree with compiler line numbering; a
    trailing newline does not start an extra line.
    """
    if b"\x00" in content:
        return None
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        return None
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


_MIN_BAND = 16


class _BandedTable:
    """Suffix LCS lengths of ``x[i:]`` and ``y[j:]`` inside a diagonal band.

    Only cells with ``|j - i| <= width`` are computed; the rest read as 0.
    A path that makes D insertions and deletions never leaves the band
    ``|j - i| <= D``, so once ``width`` is at least the edit distance every
    cell on a maximum alignment holds its exact value, and every other cell
    holds a lower bound.  That is all the forward walk relies on.
    """

    __slots__ = ("_rows", "_width")

    def __init__(self, x: list[int], y: list[int], width: int) -> None:
        n, m = len(x), len(y)
        span = 2 * width + 2
        rows = [array("I", [0]) * span for _ in range(n + 1)]
        for i in range(n - 1, -1, -1):
            row = rows[i]
            below = rows[i + 1]
            xi = x[i]
            offset = width - i
            for j in range(min(m - 1, i + width), max(0, i - width) - 1, -1):
                t = j + offset
                if xi == y[j]:
                    row[t] = below[t] + 1
                else:
                    down = below[t - 1] if t else 0
                    right = row[t + 1]
                    row[t] = down if down >= right else right
        self._rows = rows
        self._width = width

    def get(self, i: int, j: int) -> int:
        t = j - i + self._width
        if i >= len(self._rows) or t < 0 or t > 2 * self._width:
            return 0
        return self._rows[i][t]


def _suffix_lcs_table(x: list[int], y: list[int]) -> _BandedTable:
    """Widen the band until it holds every maximum alignment.

    Cost is proportional to ``(len(x) + len(y)) * D`` for edit distance D,
    instead of ``len(x) * len(y)``.
    """
    n, m = len(x), len(y)
    width = max(abs(n - m), _MIN_BAND)
    while True:
        table = _BandedTable(x, y, width)
        if n + m - 2 * table.get(0, 0) <= width or width >= max(n, m):
            return table
        width *= 2


def _lcs_pairs(x: list[int], y: list[int]) -> list[tuple[int, int]]:
    """Matched ``(i, j)`` index pairs of the preferred maximum alignment."""
    if not x or not y:
        return []
    table = _suffix_lcs_table(x, y)

    positions: dict[int, list[int]] = {}
    for i, value in enumerate(x):
        positions.setdefault(value, []).append(i)

    pairs: list[tuple[int, int]] = []
    i = j = 0
    remaining = table.get(0, 0)
    m = len(y)
    while remaining:
        # Each column is visited at most once over the whole walk.
        while j < m:
            candidates = positions.get(y[j])
            if candidates:
                idx = bisect_left(candidates, i)
                if idx < len(candidates):
                    ii = candidates[idx]
                    # Later rows with the same value can only do worse.
                    if table.get(ii + 1, j + 1) == remaining - 1:
                        pairs.append((ii, j))
                        i = ii + 1
                        remaining -= 1
                        j += 1
                        break
            j += 1
        else:
            break
    return pairs


def correlate(lines_a: list[str], lines_b: list[str]) -> LineMapping:
    """Map line numbers of *lines_a* onto *lines_b* for unchanged lines.

    The mapping is strictly increasing: if line i maps to i' and line j > i
    maps to j', then j' > i'.

    Returns:
        1-based A line number to 1-based B line number.
    """
    if lines_a == lines_b:
        return {n: n for n in range(1, len(lines_a) + 1)}

    # Lines present on only one side never match, so dropping them leaves
    # the set of alignments (and the preferred one) unchanged.
    shared = set(lines_a).intersection(lines_b)
    ids: dict[str, int] = {}
    keep_a = [i for i, line in enumerate(lines_a) if line in shared]
    keep_b = [j for j, line in enumerate(lines_b) if line in shared]
    x = [ids.setdefault(lines_a[i], len(ids)) for i in keep_a]
    y = [ids.setdefault(lines_b[j], len(ids)) for j in keep_b]

    mapping: LineMapping = {}
    prefix = 0
    limit = min(len(x), len(y))
    while prefix < limit and x[prefix] == y[prefix]:
        mapping[keep_a[prefix] + 1] = keep_b[prefix] + 1
        prefix += 1

    for i, j in _lcs_pairs(x[prefix:], y[prefix:]):
        mapping[keep_a[prefix + i] + 1] = keep_b[prefix + j] + 1

    logger.debug(
        "Correlated %d of %d lines (%d lines in target)",
        len(mapping),
        len(lines_a),
        len(lines_b),
    )
    return mapping


def correlate_content(content_a: bytes, content_b: bytes) -> LineMapping:
    """Correlate two raw file versions; non-text content correlates nothing."""
    lines_a = split_lines(content_a)
    lines_b = split_lines(content_b)
    if lines_a is None or lines_b is None:
        return {}
    return correlate(lines_a, lines_b)
