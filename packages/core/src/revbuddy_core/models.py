"""Canonical session data models.

Every input shape accepted by the session normalizer is mapped onto these
types, so the patch applier and the revision state machine only ever deal
with one representation.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Patch:
    """A literal edit: replace ``from_`` with ``to``.

    ``span`` is the preferred anchor when present (e.g. a quoted excerpt);
    ``from_`` is the fallback anchor. ``to == from_`` is a legal no-op used
    to mark text as approved as-is.
    """

    from_: str
    to: str
    span: str | None = None

    @property
    def anchor(self) -> str:
        return self.span if self.span else self.from_

    @property
    def is_noop(self) -> bool:
        return self.from_ == self.to

    def to_dict(self) -> dict:
        d = {"from": self.from_, "to": self.to}
        if self.span is not None:
            d["span"] = self.span
        return d


@dataclass(frozen=True)
class Finding:
    """One reviewable item: a proposed change plus the reviewer's comment."""

    comment: str
    patch: Patch
    id: str | None = None
    severity: str | None = None


@dataclass(frozen=True)
class PatchOption:
    """One of several mutually exclusive replacements sharing an anchor."""

    label: str
    patch: Patch


@dataclass
class FindingMeta:
    """Auxiliary per-finding metadata, index-aligned with ``Session.findings``."""

    rationale: str | None = None
    tradeoff: str | None = None
    suggestions: list[str] | None = None
    agent_id: str | None = None
    tags: list[str] | None = None
    # False means suggestion-only: no structured edit can be applied.
    has_patch: bool = True
    # Only set when there is more than one option to choose from.
    patch_options: list[PatchOption] | None = None
    # The finding carried its own "patch" alongside any options.
    direct_patch: bool = False

    @property
    def has_options(self) -> bool:
        return bool(self.patch_options) and len(self.patch_options) > 1

    @property
    def requires_option(self) -> bool:
        """Plain accept has nothing to apply; an option must be chosen."""
        return self.has_options and not self.direct_patch


@dataclass(frozen=True)
class Session:
    session_id: str
    findings: tuple[Finding, ...] = ()

    def __len__(self) -> int:
        return len(self.findings)


@dataclass
class Summary:
    """Document-level narrative. Pure metadata, never read by the engine."""

    big_picture: str | None = None
    what_improved: list[str] = field(default_factory=list)
    top_risks: list[str] = field(default_factory=list)
    recommended_next_pass: str | None = None
    extra: dict = field(default_factory=dict)


@dataclass
class DocComment:
    """A standalone annotation anchored to a quoted excerpt.

    Its ``patch`` is an example for display only and never enters the
    accept/ignore state machine.
    """

    agent_id: str | None = None
    severity: str | None = None
    comment: str | None = None
    rationale: str | None = None
    confidence: str | None = None
    anchor_quote: str | None = None
    patch: Patch | None = None
    suggestions: list[str] | None = None


@dataclass
class SessionWithMeta:
    """A normalized session plus everything the extended format carries."""

    session: Session
    summary: Summary | None = None
    doc_comments: list[DocComment] | None = None
    finding_meta: list[FindingMeta] | None = None

    @property
    def findings(self) -> tuple[Finding, ...]:
        return self.session.findings

    def meta_for(self, index: int) -> FindingMeta:
        """Return the metadata for finding ``index``.

        Simple-format sessions carry no metadata; every finding in them has a
        structured patch, which is exactly what the default ``FindingMeta``
        describes.
        """
        if self.finding_meta is not None and 0 <= index < len(self.finding_meta):
            return self.finding_meta[index]
        return FindingMeta()


@dataclass(frozen=True)
class NormalizeError:
    """Returned instead of a session when the input cannot be normalized."""

    error: str

    def __str__(self) -> str:
        return self.error
