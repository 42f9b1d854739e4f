"""Literal anchor matching.

An edit is only mechanically safe to apply when its anchor appears in the
current text exactly once, so callers care about the occurrence count far
more than the position.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Location:
    count: int
    position: int | None = None

    @property
    def is_unique(self) -> bool:
        return self.count == 1


def count_occurrences(text: str, substring: str) -> int:
    """Count non-overlapping occurrences of ``substring``, scanning left to right."""
    if not substring:
        raise ValueError("Cannot count occurrences of an empty substring")
    return text.count(substring)


def locate(text: str, substring: str) -> Location:
    count = count_occurrences(text, substring)
    if count == 0:
        return Location(count=0)
    return Location(count=count, position=text.find(substring))
