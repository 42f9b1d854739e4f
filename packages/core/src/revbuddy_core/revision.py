"""Per-document revision state and effective-text replay.

The effective document text is never stored. It is always recomputed from
the original text, the session, and the RevisionState by replaying accepted
patches in ascending finding-index order. Index order, not the order in which
the user clicked, is what makes the derived text reproducible from persisted
state alone.

Decisions are monotonic: once a finding is accepted, accepted with an option,
or ignored, it never returns to pending and never switches category. Every
operation treats the state as a value and returns a new one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from revbuddy_core.models import FindingMeta, Patch, SessionWithMeta
from revbuddy_core.patching import apply_patch

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
OPTION = "option"
IGNORED = "ignored"


@dataclass(frozen=True)
class RevisionState:
    accepted: frozenset[int] = frozenset()
    ignored: frozenset[int] = frozenset()
    accepted_options: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only view so a state really is a value.
        object.__setattr__(self, "accepted_options", MappingProxyType(dict(self.accepted_options)))

    def __hash__(self):
        return hash((self.accepted, self.ignored, frozenset(self.accepted_options.items())))

    @classmethod
    def from_indices(cls, accepted=(), ignored=(), accepted_options: Mapping[int, int] | None = None) -> RevisionState:
        """Build a state from loose index collections, e.g. restored from storage.

        Stored records list option-accepted indices among the accepted ones as
        well; the option wins. An index both accepted and ignored is accepted.
        """
        options = {int(k): int(v) for k, v in (accepted_options or {}).items()}
        plain = frozenset(int(i) for i in accepted) - set(options)
        taken = plain | set(options)
        return cls(
            accepted=plain,
            ignored=frozenset(int(i) for i in ignored) - taken,
            accepted_options=options,
        )

    def accepted_indices(self) -> set[int]:
        return set(self.accepted) | set(self.accepted_options)

    def status(self, index: int) -> str:
        if index in self.accepted_options:
            return OPTION
        if index in self.accepted:
            return ACCEPTED
        if index in self.ignored:
            return IGNORED
        return PENDING

    def is_decided(self, index: int) -> bool:
        return self.status(index) != PENDING


@dataclass(frozen=True)
class Decision:
    """Result of accept / accept_option / ignore.

    On refusal ``state`` is the input state, unchanged, and ``reason`` says
    why. ``text`` is the effective text after the decision when the decision
    touched the text.
    """

    ok: bool
    state: RevisionState
    text: str | None = None
    reason: str | None = None
    # The span anchor was stale and the patch landed via its "from" text.
    used_fallback: bool = False


@dataclass(frozen=True)
class ReplayResult:
    text: str
    applied: tuple[int, ...] = ()
    skipped: tuple[int, ...] = ()


def resolve_patch(doc: SessionWithMeta, state: RevisionState, index: int) -> Patch | None:
    """Return the patch that finding ``index`` contributes when accepted."""
    if not 0 <= index < len(doc.findings):
        return None
    meta = doc.meta_for(index)
    if index in state.accepted_options and meta.patch_options:
        option = state.accepted_options[index]
        if 0 <= option < len(meta.patch_options):
            return meta.patch_options[option].patch
        return None
    return doc.findings[index].patch


def replay(original: str, doc: SessionWithMeta, state: RevisionState, up_to: int | None = None) -> ReplayResult:
    order = sorted(i for i in state.accepted_indices() if up_to is None or i < up_to)
    text = original
    applied: list[int] = []
    skipped: list[int] = []
    for i in order:
        patch = resolve_patch(doc, state, i)
        if patch is None:
            skipped.append(i)
            continue
        result = apply_patch(text, patch)
        if result.ok:
            text = result.text
            applied.append(i)
        else:
            logger.debug("Replay skipped finding %d: %s", i, result.reason)
            skipped.append(i)
    return ReplayResult(text=text, applied=tuple(applied), skipped=tuple(skipped))


def effective_text(original: str, doc: SessionWithMeta, state: RevisionState, up_to: int | None = None) -> str:
    """The document as it looks with every accepted patch replayed in index order."""
    return replay(original, doc, state, up_to).text


def can_accept(state: RevisionState, index: int, meta: FindingMeta) -> bool:
    """Whether a plain accept of ``index`` is possible. Options go through accept_option."""
    if meta.has_patch is False or meta.requires_option:
        return False
    return not state.is_decided(index)


def accept(original: str, doc: SessionWithMeta, state: RevisionState, index: int) -> Decision:
    refusal = _check_pending(doc, state, index)
    if refusal:
        return Decision(ok=False, state=state, reason=refusal)
    meta = doc.meta_for(index)
    if meta.has_patch is False:
        return Decision(ok=False, state=state, reason="Suggestion only; there is no patch to apply")
    if meta.requires_option:
        return Decision(ok=False, state=state, reason="This finding has several options; choose one")

    new_state = RevisionState(
        accepted=state.accepted | {index},
        ignored=state.ignored,
        accepted_options=dict(state.accepted_options),
    )
    return _apply_decision(original, doc, state, new_state, index, doc.findings[index].patch)


def accept_option(original: str, doc: SessionWithMeta, state: RevisionState, index: int, option: int) -> Decision:
    refusal = _check_pending(doc, state, index)
    if refusal:
        return Decision(ok=False, state=state, reason=refusal)
    options = doc.meta_for(index).patch_options or []
    if not 0 <= option < len(options):
        return Decision(ok=False, state=state, reason=f"Finding {index} has no option {option}")

    new_state = RevisionState(
        accepted=state.accepted,
        ignored=state.ignored,
        accepted_options={**state.accepted_options, index: option},
    )
    return _apply_decision(original, doc, state, new_state, index, options[option].patch)


def ignore(state: RevisionState, index: int, doc: SessionWithMeta | None = None) -> Decision:
    """Mark ``index`` ignored. Ignoring an ignored finding is a no-op success."""
    if doc is not None and not 0 <= index < len(doc.findings):
        return Decision(ok=False, state=state, reason=f"No finding at index {index}")
    status = state.status(index)
    if status == IGNORED:
        return Decision(ok=True, state=state)
    if status != PENDING:
        return Decision(ok=False, state=state, reason=f"Finding {index} is already {status}")
    return Decision(
        ok=True,
        state=RevisionState(
            accepted=state.accepted,
            ignored=state.ignored | {index},
            accepted_options=dict(state.accepted_options),
        ),
    )


def _check_pending(doc: SessionWithMeta, state: RevisionState, index: int) -> str | None:
    if not 0 <= index < len(doc.findings):
        return f"No finding at index {index}"
    if state.is_decided(index):
        return f"Finding {index} is already {state.status(index)}"
    return None


def _apply_decision(
    original: str,
    doc: SessionWithMeta,
    state: RevisionState,
    new_state: RevisionState,
    index: int,
    patch: Patch,
) -> Decision:
    # Only findings before this one shape the text it is applied against.
    base = effective_text(original, doc, state, up_to=index)
    result = apply_patch(base, patch)
    if not result.ok:
        return Decision(ok=False, state=state, reason=result.reason)
    return Decision(
        ok=True,
        state=new_state,
        text=effective_text(original, doc, new_state),
        used_fallback=result.used_fallback,
    )
