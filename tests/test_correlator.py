"""Tests for covmerge.correlator."""

from __future__ import annotations

import random
import time

import pytest

from covmerge.correlator import correlate, correlate_content, split_lines


def _lcs_length(a: list[str], b: list[str]) -> int:
    prev = [0] * (len(b) + 1)
    for x in a:
        cur = [0]
        for j, y in enumerate(b):
            cur.append(prev[j] + 1 if x == y else max(prev[j + 1], cur[j]))
        prev = cur
    return prev[-1]


def _preferred_alignment(a: list[str], b: list[str]) -> dict[int, int]:
    """Straightforward full-table walk used as the reference tie-break."""
    n, m = len(a), len(b)
    table = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if a[i] == b[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    mapping: dict[int, int] = {}
    i = j = 0
    remaining = table[0][0]
    while remaining:
        found = next(
            (
                (ii, jj)
                for jj in range(j, m)
                for ii in range(i, n)
                if a[ii] == b[jj] and table[ii + 1][jj + 1] == remaining - 1
            ),
        )
        mapping[found[0] + 1] = found[1] + 1
        i, j = found[0] + 1, found[1] + 1
        remaining -= 1
    return mapping


def _c_like(functions: int) -> list[str]:
    return ["{", "\treturn 0;", "}", ""] * functions


class TestSplitLines:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            (b"", []),
            (b"a", ["a"]),
            (b"a\nb\n", ["a", "b"]),
            (b"a\nb", ["a", "b"]),
            (b"\n", [""]),
            (b"a\n\nb\n", ["a", "", "b"]),
            (b"a\r\nb\r\n", ["a\r", "b\r"]),
        ],
    )
    def test_splits_on_newline_only(self, content: bytes, expected: list[str]) -> None:
        assert split_lines(content) == expected

    def test_nul_byte_is_not_text(self) -> None:
        assert split_lines(b"ELF\x00\x01") is None

    def test_invalid_utf8_is_not_text(self) -> None:
        assert split_lines(b"caf\xe9\n") is None

    def test_utf8_is_text(self) -> None:
        assert split_lines("café\n".encode()) == ["café"]


class TestCorrelate:
    def test_identical_is_identity(self) -> None:
        lines = ["int a;", "int b;", "int a;"]
        assert correlate(lines, list(lines)) == {1: 1, 2: 2, 3: 3}

    def test_both_empty(self) -> None:
        assert correlate([], []) == {}

    def test_one_side_empty(self) -> None:
        assert correlate([], ["a"]) == {}
        assert correlate(["a"], []) == {}

    def test_edited_line_is_unmapped(self) -> None:
        assert correlate(["a", "b", "c"], ["a", "X", "c"]) == {1: 1, 3: 3}

    def test_inserted_line_shifts_following(self) -> None:
        assert correlate(["a", "b", "c"], ["a", "new", "b", "c"]) == {1: 1, 2: 3, 3: 4}

    def test_deleted_line_is_unmapped(self) -> None:
        assert correlate(["a", "gone", "b"], ["a", "b"]) == {1: 1, 3: 2}

    def test_fully_rewritten(self) -> None:
        assert correlate(["a", "b"], ["c", "d"]) == {}

    def test_repeated_line_prefers_earliest_target(self) -> None:
        assert correlate(["x"], ["x", "x"]) == {1: 1}

    def test_repeated_source_prefers_earliest_source(self) -> None:
        assert correlate(["p", "r", "p"], ["z", "p"]) == {1: 2}

    def test_swap_keeps_earliest_target_line(self) -> None:
        assert correlate(["a", "b"], ["b", "a"]) == {2: 1}

    def test_blank_lines_correlate(self) -> None:
        before = ["{", "", "}", ""]
        after = ["{", "x;", "", "}", ""]
        assert correlate(before, after) == {1: 1, 2: 3, 3: 4, 4: 5}

    def test_deterministic(self) -> None:
        a = ["x", "y", "x", "y", "x"]
        b = ["y", "x", "y", "x"]
        assert correlate(a, b) == correlate(list(a), list(b))

    def test_random_alignments_are_maximal_and_ordered(self) -> None:
        rng = random.Random(1234)
        alphabet = ["a", "b", "c", "", "}"]
        for _ in range(200):
            a = [rng.choice(alphabet) for _ in range(rng.randint(0, 12))]
            b = [rng.choice(alphabet) for _ in range(rng.randint(0, 12))]
            mapping = correlate(a, b)

            assert len(mapping) == _lcs_length(a, b)
            pairs = sorted(mapping.items())
            for line_a, line_b in pairs:
                assert a[line_a - 1] == b[line_b - 1]
            targets = [line_b for _, line_b in pairs]
            assert targets == sorted(set(targets))

    def test_matches_reference_tie_break(self) -> None:
        rng = random.Random(99)
        alphabet = ["{", "}", "", "x;", "y;"]
        for _ in range(150):
            a = [rng.choice(alphabet) for _ in range(rng.randint(0, 25))]
            b = [rng.choice(alphabet) for _ in range(rng.randint(0, 25))]
            assert correlate(a, b) == _preferred_alignment(a, b)

    def test_matches_reference_on_small_edits(self) -> None:
        rng = random.Random(7)
        for _ in range(40):
            base = _c_like(rng.randint(5, 20))
            old = list(base)
            for _ in range(rng.randint(1, 6)):
                pos = rng.randrange(len(old) + 1)
                if old and rng.random() < 0.5:
                    del old[min(pos, len(old) - 1)]
                else:
                    old.insert(pos, rng.choice(["}", "", "int a;"]))
            assert correlate(old, base) == _preferred_alignment(old, base)

    def test_large_repetitive_file_with_one_deletion(self) -> None:
        base = _c_like(5000)
        old = base[:3] + base[4:]

        start = time.perf_counter()
        mapping = correlate(old, base)
        elapsed = time.perf_counter() - start

        assert len(mapping) == len(old)
        assert all(mapping[k] == k for k in range(1, 4))
        assert all(mapping[k] == k + 1 for k in range(4, len(old) + 1))
        assert elapsed < 10.0


class TestCorrelateContent:
    def test_text_content(self) -> None:
        assert correlate_content(b"a\nb\n", b"b\n") == {2: 1}

    def test_binary_side_correlates_nothing(self) -> None:
        assert correlate_content(b"a\n", b"a\x00\n") == {}
        assert correlate_content(b"\xff", b"a\n") == {}
