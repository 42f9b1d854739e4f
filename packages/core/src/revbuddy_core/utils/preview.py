"""Presentation helpers layered on top of the anchor matcher.

Nothing in here is used by the engine itself; hosts call these to show where
a finding lands in the current text and to jump to it.
"""

from __future__ import annotations

from dataclasses import dataclass

from revbuddy_core.anchor import locate
from revbuddy_core.models import Finding, Session

_ELLIPSIS = "…"


@dataclass(frozen=True)
class Snippet:
    before: str
    match: str
    after: str

    def __str__(self) -> str:
        return f"{self.before}{self.match}{self.after}"


def finding_anchor(finding: Finding) -> str:
    return finding.patch.anchor


def snippet_with_match(text: str, search: str, context_chars: int = 50) -> Snippet | None:
    """Return the first occurrence of ``search`` with up to ``context_chars`` around it."""
    if not search:
        return None
    pos = text.find(search)
    if pos == -1:
        return None
    start = max(0, pos - context_chars)
    end = min(len(text), pos + len(search) + context_chars)
    return Snippet(
        before=(_ELLIPSIS if start > 0 else "") + text[start:pos],
        match=text[pos : pos + len(search)],
        after=text[pos + len(search) : end] + (_ELLIPSIS if end < len(text) else ""),
    )


def highlight_ranges(text: str, session: Session) -> list[tuple[int, int]]:
    """(start, end) of the first occurrence of every finding anchor found in ``text``."""
    ranges = set()
    for finding in session.findings:
        anchor = finding_anchor(finding)
        if not anchor:
            continue
        loc = locate(text, anchor)
        if loc.position is not None:
            ranges.add((loc.position, loc.position + len(anchor)))
    return sorted(ranges)


def find_in_source(text: str, search: str, fallback: str | None = None) -> tuple[int, str] | None:
    """Offset and matched text of the first candidate that occurs in ``text``."""
    for candidate in (search, fallback):
        if not candidate:
            continue
        pos = text.find(candidate)
        if pos != -1:
            return pos, candidate
    return None


def offset_to_line_col(text: str, offset: int) -> tuple[int, int]:
    """Convert a character offset to a 1-based (line, column) pair."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    col = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, col
