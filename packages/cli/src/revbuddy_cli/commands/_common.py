"""Helpers shared by the document commands."""

from __future__ import annotations

import click

from revbuddy_cli.host import DocumentReview

SEVERITY_STYLE = {
    "critical": "red",
    "important": "red",
    "major": "yellow",
    "suggestion": "cyan",
    "minor": "blue",
    "nitpick": "dim",
}

STATUS_STYLE = {
    "pending": "white",
    "accepted": "green",
    "option": "green",
    "ignored": "dim",
}


def open_review(ctx: click.Context, document: str) -> DocumentReview:
    """Return the review in progress for ``document`` or stop with a usage error."""
    workspace = ctx.obj["workspace"]
    try:
        review = workspace.open(document)
    except UnicodeDecodeError:
        raise click.ClickException(f"Cannot read {document}: it is not UTF-8 text")
    except OSError as e:
        raise click.ClickException(f"Cannot read {document}: {e}")
    if review is None:
        raise click.UsageError(
            f"No review session for {document}. Run `revbuddy load {document} SESSION.json` first."
        )
    return review


def require_index(review: DocumentReview, index: int) -> None:
    total = len(review.doc.findings)
    if not 0 <= index < total:
        message = f"must be between 0 and {total - 1}" if total else "session has no findings"
        raise click.BadParameter(message, param_hint="INDEX")


def severity_markup(severity: str | None) -> str:
    if not severity:
        return ""
    style = SEVERITY_STYLE.get(severity.lower(), "white")
    return f"[{style}]{severity}[/{style}]"


def status_markup(status: str) -> str:
    style = STATUS_STYLE.get(status, "white")
    return f"[{style}]{status}[/{style}]"
