"""Safe single-patch application.

A review session is generated against a snapshot of the document; by the
time the user acts on a finding the text may have drifted. The applier tries
the patch's ``span`` first and falls back to ``from`` when the span is no
longer present, but it never guesses between several candidate matches:
ambiguity is always a refusal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from revbuddy_core.anchor import count_occurrences
from revbuddy_core.models import Patch

logger = logging.getLogger(__name__)

AMBIGUOUS = "ambiguous"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying one patch.

    ``text`` is the new text on success and the untouched input on failure,
    so a caller can never pick up a half-applied edit.
    """

    ok: bool
    text: str
    reason: str | None = None
    kind: str | None = None  # AMBIGUOUS | NOT_FOUND on failure
    count: int = 0
    anchor_used: str | None = None  # "span" | "from"
    span_given: bool = False

    @property
    def used_fallback(self) -> bool:
        """True when a span was supplied but ``from`` decided the outcome."""
        return self.span_given and self.anchor_used == "from"


def apply_patch(text: str, patch: Patch) -> ApplyResult:
    """Apply ``patch`` to ``text`` only if its anchor is unique."""
    span_given = bool(patch.span)
    if span_given:
        span_count = count_occurrences(text, patch.span)
        if span_count == 1:
            return ApplyResult(
                ok=True,
                text=text.replace(patch.span, patch.to, 1),
                count=1,
                anchor_used="span",
                span_given=True,
            )
        if span_count > 1:
            return ApplyResult(
                ok=False,
                text=text,
                reason=f"Span appears {span_count} times; cannot apply safely",
                kind=AMBIGUOUS,
                count=span_count,
                anchor_used="span",
                span_given=True,
            )
        # Stale span: fall through to 'from'.

    count = count_occurrences(text, patch.from_) if patch.from_ else 0
    if count == 0:
        reason = "Could not locate span or 'from' in text" if span_given else "Could not locate 'from' in text"
        return ApplyResult(
            ok=False, text=text, reason=reason, kind=NOT_FOUND, count=0, anchor_used="from", span_given=span_given
        )
    if count > 1:
        return ApplyResult(
            ok=False,
            text=text,
            reason=f"'from' appears {count} times; cannot apply safely",
            kind=AMBIGUOUS,
            count=count,
            anchor_used="from",
            span_given=span_given,
        )

    if span_given:
        logger.info("Span %r not found; applied patch using its 'from' anchor instead", patch.span[:60])
    return ApplyResult(
        ok=True,
        text=text.replace(patch.from_, patch.to, 1),
        count=1,
        anchor_used="from",
        span_given=span_given,
    )


def check_patch(text: str, patch: Patch) -> ApplyResult:
    """Like apply_patch, for previews: the result's ``text`` is always the input."""
    result = apply_patch(text, patch)
    if not result.ok:
        return result
    return ApplyResult(
        ok=True,
        text=text,
        count=result.count,
        anchor_used=result.anchor_used,
        span_given=result.span_given,
    )


def can_apply_patch(text: str, patch: Patch) -> bool:
    return apply_patch(text, patch).ok
