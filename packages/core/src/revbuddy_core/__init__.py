"""Session ingestion and patch-application engine."""

from revbuddy_core.anchor import count_occurrences, locate
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
from revbuddy_core.patching import ApplyResult, apply_patch, can_apply_patch, check_patch
from revbuddy_core.revision import (
    Decision,
    RevisionState,
    accept,
    accept_option,
    can_accept,
    effective_text,
    ignore,
    replay,
)
from revbuddy_core.session import normalize_session

__all__ = [
    "ApplyResult",
    "Decision",
    "DocComment",
    "Finding",
    "FindingMeta",
    "NormalizeError",
    "Patch",
    "PatchOption",
    "RevisionState",
    "Session",
    "SessionWithMeta",
    "Summary",
    "accept",
    "accept_option",
    "apply_patch",
    "can_accept",
    "can_apply_patch",
    "check_patch",
    "count_occurrences",
    "effective_text",
    "ignore",
    "locate",
    "normalize_session",
    "replay",
]
