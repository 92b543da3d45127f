"""Integer range lists such as ``4,6-10,19`` used to pick test case numbers."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

RANGE_LIST_ERROR = "must be a comma-separated list of integers / integer ranges"

PIECE_RE = re.compile(r"(\d+)(?:(?:\.\.|-)(\d+))?")


class IntSet(frozenset):
    """Immutable set of non-negative integers that iterates in ascending order."""

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(frozenset.__iter__(self)))

    def __repr__(self) -> str:
        return f"IntSet({format_int_set(self)})"

    def __str__(self) -> str:
        return format_int_set(self)


def parse_int_ranges(text: str) -> IntSet:
    values = set()
    for piece in text.split(","):
        match = PIECE_RE.fullmatch(piece)
        if match is None:
            raise ValueError(RANGE_LIST_ERROR)
        lower = int(match.group(1))
        if match.group(2) is None:
            values.add(lower)
            continue
        upper = int(match.group(2))
        if lower > upper:
            raise ValueError(RANGE_LIST_ERROR)
        values.update(range(lower, upper + 1))
    return IntSet(values)


def format_int_set(values: Iterable[int]) -> str:
    return "{" + ", ".join(str(value) for value in sorted(values)) + "}"
