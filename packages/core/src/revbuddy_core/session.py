"""Session normalization.

Review sessions arrive as loosely structured JSON in one of two shapes:

  simple  — {"session_id": ..., "findings": [{"comment", "patch": {from, to, span?}}]}
  v1      — the extended "rb_session_v1" protocol with a summary, doc comments,
            anchor quotes, rationale, suggestions and multiple patch options.

Both are treated as producers of the same canonical model (Session +
FindingMeta). The shape is decided once, up front, by is_extended_session().
Normalization either fully succeeds or returns a NormalizeError naming the
offending index/field; it never hands back a partially parsed session.
"""

from __future__ import annotations

import json
import logging

from revbuddy_core.models import (
    DocComment,
    Finding,
    FindingMeta,
    NormalizeError,
    Patch,
    PatchOption,
    Session,
    SessionWithMeta,
    Summary,
)

logger = logging.getLogger(__name__)

PROTOCOL_V1 = "rb_session_v1"

_OPTION_LABELS = ("Option A", "Option B", "Option C", "Option D", "Option E")
_SUMMARY_LIST_FIELDS = ("what_improved", "top_risks")
_SUMMARY_TEXT_FIELDS = ("big_picture", "recommended_next_pass")


class SessionFormatError(ValueError):
    """Raised internally on a structural violation; never escapes normalize_session()."""


def normalize_session(raw: str | bytes) -> SessionWithMeta | NormalizeError:
    """Parse raw session JSON into a SessionWithMeta, or a NormalizeError."""
    try:
        parsed = json.loads(raw.strip())
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError, TypeError, AttributeError):
        return NormalizeError("Invalid JSON")
    if not isinstance(parsed, dict):
        return NormalizeError("Expected a JSON object")

    try:
        if is_extended_session(parsed):
            logger.debug("Normalizing session as %s", PROTOCOL_V1)
            return _parse_extended(parsed)
        logger.debug("Normalizing session as simple format")
        return _parse_simple(parsed)
    except SessionFormatError as e:
        return NormalizeError(str(e))


def is_extended_session(obj: dict) -> bool:
    return obj.get("protocol_version") == PROTOCOL_V1 or (
        isinstance(obj.get("summary"), dict) and isinstance(obj.get("doc_comments"), list)
    )


# --------------------------------------------------------------------------- #
# Simple format                                                                #
# --------------------------------------------------------------------------- #


def _parse_simple(obj: dict) -> SessionWithMeta:
    session_id = obj.get("session_id")
    if not isinstance(session_id, str):
        raise SessionFormatError("Missing or invalid session_id (must be a string)")
    raw_findings = obj.get("findings")
    if not isinstance(raw_findings, list):
        raise SessionFormatError("Missing or invalid findings (must be an array)")

    findings = []
    for i, f in enumerate(raw_findings):
        if not isinstance(f, dict):
            raise SessionFormatError(f"findings[{i}] must be an object")
        p = f.get("patch")
        if not isinstance(p, dict):
            raise SessionFormatError(f"findings[{i}].patch must be an object")
        if not isinstance(p.get("from"), str) or not isinstance(p.get("to"), str):
            raise SessionFormatError(f"findings[{i}].patch must have from and to (strings)")
        findings.append(
            Finding(
                id=_str_or_none(f.get("id")),
                comment=_str_or_none(f.get("comment")) or "",
                patch=Patch(from_=p["from"], to=p["to"], span=_str_or_none(p.get("span"))),
                severity=_str_or_none(f.get("severity")),
            )
        )
    return SessionWithMeta(session=Session(session_id=session_id, findings=tuple(findings)))


# --------------------------------------------------------------------------- #
# Extended (rb_session_v1) format                                              #
# --------------------------------------------------------------------------- #


def _parse_extended(obj: dict) -> SessionWithMeta:
    session_id = obj["session_id"] if isinstance(obj.get("session_id"), str) else "unknown"
    raw_findings = obj.get("findings", [])
    if raw_findings is None:
        raw_findings = []
    if not isinstance(raw_findings, list):
        raise SessionFormatError("Invalid findings (must be an array)")

    findings: list[Finding] = []
    finding_meta: list[FindingMeta] = []
    for i, f in enumerate(raw_findings):
        finding, meta = _parse_extended_finding(i, f)
        findings.append(finding)
        finding_meta.append(meta)

    summary = _parse_summary(obj.get("summary"))
    doc_comments = _parse_doc_comments(obj.get("doc_comments"))

    return SessionWithMeta(
        session=Session(session_id=session_id, findings=tuple(findings)),
        summary=summary,
        doc_comments=doc_comments or None,
        finding_meta=finding_meta or None,
    )


def _parse_extended_finding(i: int, f) -> tuple[Finding, FindingMeta]:
    where = f"findings[{i}]"
    if not isinstance(f, dict):
        raise SessionFormatError(f"{where} must be an object")

    location = f.get("location")
    if location is not None and not isinstance(location, dict):
        raise SessionFormatError(f"{where}.location must be an object")
    anchor = _str_or_none((location or {}).get("anchor_quote")) or ""

    patch_obj = f.get("patch")
    if patch_obj is not None and not isinstance(patch_obj, dict):
        raise SessionFormatError(f"{where}.patch must be an object")
    direct = (
        patch_obj is not None and isinstance(patch_obj.get("from"), str) and isinstance(patch_obj.get("to"), str)
    )

    raw_options = f.get("patch_options")
    if raw_options is None:
        raw_options = []
    if not isinstance(raw_options, list):
        raise SessionFormatError(f"{where}.patch_options must be an array")

    # Rules 1 and 2: resolve the shared anchor.
    from_str = patch_obj["from"] if direct else anchor
    if direct and isinstance(patch_obj.get("span"), str):
        span_str = patch_obj["span"]
    else:
        span_str = anchor or None

    # Rule 3: options share the finding's anchor.
    options: list[PatchOption] = []
    if raw_options and from_str:
        for o, opt in enumerate(raw_options):
            if not isinstance(opt, dict):
                raise SessionFormatError(f"{where}.patch_options[{o}] must be an object")
            to_val = opt.get("to")
            if not isinstance(to_val, str):
                raise SessionFormatError(f"{where}.patch_options[{o}].to must be a string")
            label = opt.get("label")
            if not isinstance(label, str):
                label = _OPTION_LABELS[o] if o < len(_OPTION_LABELS) else f"Option {o + 1}"
            options.append(PatchOption(label=label, patch=Patch(from_=from_str, to=to_val, span=span_str)))

    # Rule 4: primary patch.
    if direct:
        patch = Patch(from_=patch_obj["from"], to=patch_obj["to"], span=span_str)
    elif len(options) == 1:
        patch = options[0].patch
    else:
        patch = Patch(from_=from_str, to=from_str, span=span_str)

    finding = Finding(
        id=_str_or_none(f.get("finding_id")),
        comment=_str_or_none(f.get("comment")) or "",
        patch=patch,
        severity=_str_or_none(f.get("severity")),
    )
    meta = FindingMeta(
        rationale=_str_or_none(f.get("rationale")),
        tradeoff=_str_or_none(f.get("tradeoff")),
        suggestions=_str_list(f.get("suggestions"), f"{where}.suggestions"),
        agent_id=_str_or_none(f.get("agent_id")),
        tags=_str_list(f.get("tags"), f"{where}.tags"),
        # Rule 5
        has_patch=direct or len(options) > 0,
        # Rule 6: a single option collapses into the primary patch.
        patch_options=options if len(options) > 1 else None,
        direct_patch=bool(direct),
    )
    return finding, meta


def _parse_summary(raw) -> Summary | None:
    if not isinstance(raw, dict):
        return None
    summary = Summary()
    for key, value in raw.items():
        if key in _SUMMARY_TEXT_FIELDS and isinstance(value, str):
            setattr(summary, key, value)
        elif key in _SUMMARY_LIST_FIELDS and isinstance(value, list):
            setattr(summary, key, [v for v in value if isinstance(v, str)])
        else:
            summary.extra[key] = value
    return summary


def _parse_doc_comments(raw) -> list[DocComment]:
    if not isinstance(raw, list):
        return []
    comments = []
    for i, d in enumerate(raw):
        where = f"doc_comments[{i}]"
        if not isinstance(d, dict):
            raise SessionFormatError(f"{where} must be an object")
        p = d.get("patch")
        patch = None
        # A recommended edit that changes nothing is not worth surfacing.
        if isinstance(p, dict) and isinstance(p.get("from"), str) and isinstance(p.get("to"), str):
            if p["to"] != p["from"]:
                patch = Patch(from_=p["from"], to=p["to"])
        comments.append(
            DocComment(
                agent_id=_str_or_none(d.get("agent_id")),
                severity=_str_or_none(d.get("severity")),
                comment=_str_or_none(d.get("comment")),
                rationale=_str_or_none(d.get("rationale")),
                confidence=_str_or_none(d.get("confidence")),
                anchor_quote=_str_or_none(d.get("anchor_quote")),
                patch=patch,
                suggestions=_str_list(d.get("suggestions"), f"{where}.suggestions"),
            )
        )
    return comments


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) else None


def _str_list(value, where: str) -> list[str] | None:
    """Keep the string entries of an optional array; None when nothing is left."""
    if value is None:
        return None
    if not isinstance(value, list):
        raise SessionFormatError(f"{where} must be an array")
    items = [v for v in value if isinstance(v, str)]
    return items or None
