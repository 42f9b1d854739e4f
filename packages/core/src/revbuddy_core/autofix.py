"""Optional LLM-backed rewrites for findings the engine cannot apply on its own.

Suggestion-only findings carry free-text alternatives but no structured edit.
The helpers here turn such a finding into a provider request and the
provider's answer back into a Patch, which then goes through the ordinary
patch applier, so the unique-anchor safety rule still holds.
"""

from __future__ import annotations

from revbuddy_core.models import Finding, FindingMeta, Patch
from revbuddy_core.providers.anthropic import AnthropicFixer
from revbuddy_core.providers.base import BaseFixer, FixRequest, FixResult
from revbuddy_core.providers.google import GoogleFixer
from revbuddy_core.providers.openai import OpenAIFixer

_PROVIDERS = {"anthropic": AnthropicFixer, "openai": OpenAIFixer, "google": GoogleFixer}
API_KEY_ENV = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY", "google": "GOOGLE_API_KEY"}


def get_fixer(config: dict) -> BaseFixer:
    provider = config.get("autofix_provider", "anthropic")
    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown auto-fix provider: {provider!r}. Choose one of: {', '.join(_PROVIDERS)}.")
    api_key = config.get(f"{provider}_api_key")
    if not api_key:
        raise ValueError(f"{API_KEY_ENV[provider]} environment variable is not set.")
    return _PROVIDERS[provider](api_key=api_key, model=config.get("autofix_model"))


def build_fix_request(
    text: str,
    anchor: str,
    suggestions: list[str] | None = None,
    context_chars: int = 300,
) -> FixRequest | None:
    """Cut ``anchor`` and its surroundings out of ``text``; None when the anchor is absent."""
    if not anchor:
        return None
    pos = text.find(anchor)
    if pos == -1:
        return None
    end = pos + len(anchor)
    return FixRequest(
        text=anchor,
        context_before=text[max(0, pos - context_chars) : pos] or None,
        context_after=text[end : end + context_chars] or None,
        suggestion_hint="\n".join(suggestions) if suggestions else None,
    )


def suggestion_edit(finding: Finding, meta: FindingMeta, replacement: str, label: str | None = None) -> dict:
    """The edit object sent along with apply_suggestion()."""
    edit = {
        "comment": finding.comment,
        "patch": finding.patch.to_dict(),
        "replacement": replacement,
    }
    if label:
        edit["option_label"] = label
    if meta.rationale:
        edit["rationale"] = meta.rationale
    return edit


def fix_to_patch(result: FixResult) -> Patch | None:
    if not result.ok or result.from_ is None or result.to is None:
        return None
    return Patch(from_=result.from_, to=result.to)
