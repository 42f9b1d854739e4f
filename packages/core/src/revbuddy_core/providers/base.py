"""Base fixer implementing the Template Method pattern.

Both auto-fix flows share the same algorithm:
    quick_fix() / apply_suggestion()
        → build system + user prompt
        → _call_with_retry() → _call_api()   ← only this differs per provider
        → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

Every outcome, including a provider that never answered, comes back as a
FixResult value; nothing raises past this boundary.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_QUICK_FIX_MAX_TOKENS = 256
_APPLY_SUGGESTION_MAX_TOKENS = 1024

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

QUICK_FIX_SYSTEM = """You are a line-level editor. Given a line or short selection from a document, suggest exactly one minimal edit.
Output only a single JSON object with two keys: "from" (the exact original text) and "to" (the improved text).
Rules: only fix grammar, clarity, or style; do not change meaning. Keep the edit minimal. Preserve formatting and line breaks.
If the text needs no change, set "to" equal to "from"."""  # noqa: E501

APPLY_SUGGESTION_SYSTEM = """You are an editor applying a suggested change to a document.
You will receive:
1. An "edit" object: review comment, patch (from/to/span), option label, and the chosen replacement text.
2. The full "originalText" of the document.

Respond with exactly one JSON object with two string keys:
- "from": the exact substring of originalText to replace (must appear exactly once in originalText, or use the patch.span or patch.from from the edit).
- "to": the replacement text (should match the suggested replacement or a minimal refinement that fits the document).

Rules: Preserve document structure. Do not change anything outside the replaced span. Output only valid JSON, no markdown or explanation."""  # noqa: E501


@dataclass(frozen=True)
class FixRequest:
    """A quick-fix request: the exact text to rewrite plus optional surroundings."""

    text: str
    context_before: str | None = None
    context_after: str | None = None
    suggestion_hint: str | None = None


@dataclass(frozen=True)
class FixResult:
    ok: bool
    from_: str | None = None
    to: str | None = None
    reason: str | None = None


class BaseFixer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MODEL: str = ""
    TEMPERATURE: float = 0.2

    def __init__(self, model: str | None = None):
        self.model = model or self.MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def quick_fix(self, request: FixRequest) -> FixResult:
        """Ask for one minimal rewrite of ``request.text``."""
        raw = self._call_with_retry(QUICK_FIX_SYSTEM, self._build_quick_fix_prompt(request), _QUICK_FIX_MAX_TOKENS)
        if raw is None:
            return FixResult(ok=False, reason=f"{self.__class__.__name__}: no response from provider")
        return self._parse(raw)

    def apply_suggestion(self, edit: dict, original_text: str) -> FixResult:
        """Turn a chosen suggestion into a concrete from/to edit against ``original_text``."""
        raw = self._call_with_retry(
            APPLY_SUGGESTION_SYSTEM,
            self._build_apply_suggestion_prompt(edit, original_text),
            _APPLY_SUGGESTION_MAX_TOKENS,
        )
        if raw is None:
            return FixResult(ok=False, reason=f"{self.__class__.__name__}: no response from provider")
        return self._parse(raw)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Make a single API call and return the raw text response.

        Should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str | None:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt, max_tokens)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        return None

    def _build_quick_fix_prompt(self, request: FixRequest) -> str:
        parts = []
        if request.suggestion_hint:
            parts.append(
                "Suggestion from a previous review (try to incorporate if applicable):\n" + request.suggestion_hint
            )
        if request.context_before:
            parts.append("Context before:\n" + request.context_before)
        parts.append("Text to fix:\n" + request.text)
        if request.context_after:
            parts.append("Context after:\n" + request.context_after)
        return "\n\n".join(parts)

    def _build_apply_suggestion_prompt(self, edit: dict, original_text: str) -> str:
        return "\n".join(
            [
                "Edit suggestion (JSON):",
                json.dumps(edit, indent=2, ensure_ascii=False),
                "",
                "Original document text:",
                "---",
                original_text,
                "---",
            ]
        )

    def _parse(self, raw: str) -> FixResult:
        """Parse a single {"from", "to"} object, tolerating a markdown fence around it."""
        raw = (raw or "").strip()
        match = _FENCED_RE.search(raw)
        cleaned = match.group(1).strip() if match else raw
        try:
            obj = json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning("%s: response was not valid JSON: %s", self.__class__.__name__, raw[:200])
            return FixResult(ok=False, reason="Model did not return valid JSON")
        if not isinstance(obj, dict) or not isinstance(obj.get("from"), str) or not isinstance(obj.get("to"), str):
            return FixResult(ok=False, reason="JSON must contain 'from' and 'to' strings")
        return FixResult(ok=True, from_=obj["from"], to=obj["to"])
