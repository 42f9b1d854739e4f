"""list, status and show commands — read-only views of a review in progress."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from revbuddy_cli.commands._common import open_review, require_index, severity_markup, status_markup
from revbuddy_cli.host import DocumentReview
from revbuddy_core.models import NormalizeError
from revbuddy_core.patching import AMBIGUOUS, check_patch
from revbuddy_core.revision import IGNORED, PENDING, resolve_patch
from revbuddy_core.session import normalize_session
from revbuddy_core.utils.preview import find_in_source, highlight_ranges, snippet_with_match

console = Console()


@click.command("list")
@click.pass_context
def list_cmd(ctx):
    """List documents that have a review in progress in the configured store."""
    store = ctx.obj["store"]
    doc_ids = store.list_documents()
    if not doc_ids:
        console.print("[yellow]No reviews in progress.[/yellow]")
        return

    table = Table(title="Reviews in progress", show_header=True, header_style="bold cyan")
    table.add_column("Document", style="bold")
    table.add_column("Findings", justify="right")
    table.add_column("Accepted", justify="right")
    table.add_column("Ignored", justify="right")

    for doc_id in doc_ids:
        record = store.load_state(doc_id)
        if record is None:
            continue
        session = normalize_session(record.raw_json)
        findings = "?" if isinstance(session, NormalizeError) else str(len(session.findings))
        table.add_row(
            escape(doc_id),
            findings,
            str(len(record.accepted_indices)),
            str(len(record.ignored_indices)),
        )

    console.print(table)


@click.command("status")
@click.argument("document", type=click.Path(dir_okay=False))
@click.option("--text", "show_text", is_flag=True, help="Also print the current text with every anchor highlighted.")
@click.pass_context
def status_cmd(ctx, document: str, show_text: bool):
    """Show every finding of DOCUMENT with its decision and whether it still applies."""
    review = open_review(ctx, document)
    findings = review.doc.findings
    if not findings:
        console.print("[yellow]This session has no findings.[/yellow]")
        return

    table = Table(
        title=f"{review.doc_id} — session {review.doc.session.session_id}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("#", justify="right", width=4)
    table.add_column("Severity", width=10)
    table.add_column("Status", width=10)
    table.add_column("Applies", width=14)
    table.add_column("Comment", max_width=60)

    for i, finding in enumerate(findings):
        marker = "▶ " if review.selected_index == i else ""
        table.add_row(
            f"{marker}{i}",
            severity_markup(finding.severity),
            status_markup(review.state.status(i)),
            _applies(review, i),
            escape(finding.comment.splitlines()[0] if finding.comment else ""),
        )
    console.print(table)

    replayed = review.current()
    if replayed.skipped:
        skipped = ", ".join(str(i) for i in replayed.skipped)
        console.print(f"[yellow]⚠ Accepted finding(s) {skipped} no longer apply and were skipped.[/yellow]")

    accepted = len(review.state.accepted_indices())
    ignored = len(review.state.ignored)
    console.print(f"\n  {accepted} accepted, {ignored} ignored, {len(findings) - accepted - ignored} pending")

    if show_text:
        text = review.effective_text()
        body = Text(text)
        for start, end in highlight_ranges(text, review.doc.session):
            body.stylize("black on yellow", start, end)
        console.print()
        console.print(body)


@click.command("show")
@click.argument("document", type=click.Path(dir_okay=False))
@click.argument("index", type=int, required=False)
@click.pass_context
def show_cmd(ctx, document: str, index: int | None):
    """Show finding INDEX of DOCUMENT in detail (default: the selected finding)."""
    review = open_review(ctx, document)
    if index is None:
        index = review.selected_index if review.selected_index is not None else 0
    require_index(review, index)

    finding = review.doc.findings[index]
    meta = review.doc.meta_for(index)
    config = ctx.obj.get("config") or {}

    header = f"[bold]Finding {index}[/bold]"
    if finding.id:
        header += f" [dim]({escape(finding.id)})[/dim]"
    parts = [header, severity_markup(finding.severity), status_markup(review.state.status(index))]
    if meta.agent_id:
        parts.append(f"[dim]{escape(meta.agent_id)}[/dim]")
    console.print("  ".join(p for p in parts if p))
    console.print(escape(finding.comment))

    if meta.rationale:
        console.print(f"\n[bold]Rationale[/bold]\n{escape(meta.rationale)}")
    if meta.tradeoff:
        console.print(f"\n[bold]Tradeoff[/bold]\n{escape(meta.tradeoff)}")
    if meta.tags:
        console.print(f"\n[dim]Tags: {escape(', '.join(meta.tags))}[/dim]")
    if meta.suggestions:
        console.print("\n[bold]Suggestions[/bold]")
        for n, suggestion in enumerate(meta.suggestions):
            console.print(f"  {n}. {escape(suggestion)}")

    if meta.has_options:
        console.print("\n[bold]Options[/bold] [dim](accept with --option N)[/dim]")
        for n, option in enumerate(meta.patch_options):
            chosen = " [green]✔[/green]" if review.state.accepted_options.get(index) == n else ""
            console.print(f"  {n}. [bold]{escape(option.label)}[/bold]{chosen}")
            console.print(f"     [green]+ {escape(option.patch.to)}[/green]")
    if meta.has_patch is not False and not meta.requires_option:
        console.print()
        console.print(f"[red]- {escape(finding.patch.from_)}[/red]")
        console.print(f"[green]+ {escape(finding.patch.to)}[/green]")

    _print_preview(review, index, config.get("snippet_context_chars", 50))
    review.select(index)


def _applies(review: DocumentReview, index: int) -> str:
    """One-word answer to 'would this finding apply right now?'."""
    meta = review.doc.meta_for(index)
    status = review.state.status(index)
    if status != PENDING:
        if status == IGNORED:
            return "—"
        return "[green]applied[/green]" if index in review.current().applied else "[yellow]skipped[/yellow]"
    if meta.has_patch is False:
        return "[cyan]suggestion[/cyan]"
    if meta.requires_option:
        return f"{len(meta.patch_options)} options"

    patch = resolve_patch(review.doc, review.state, index)
    if patch is None:
        return "—"
    result = check_patch(review.effective_text(up_to=index), patch)
    if result.ok:
        return "[yellow]yes (from)[/yellow]" if result.used_fallback else "[green]yes[/green]"
    if result.kind == AMBIGUOUS:
        return f"[red]ambiguous ({result.count})[/red]"
    return "[red]not found[/red]"


def _print_preview(review: DocumentReview, index: int, context_chars: int) -> None:
    finding = review.doc.findings[index]
    text = review.effective_text()
    found = find_in_source(text, finding.patch.anchor, finding.patch.from_)
    if found is None:
        console.print("\n[dim]Not found in the current text.[/dim]")
        return

    _, matched = found
    snippet = snippet_with_match(text, matched, context_chars)
    preview = Text()
    preview.append(snippet.before)
    preview.append(snippet.match, style="black on yellow")
    preview.append(snippet.after)
    console.print()
    # The file on disk still holds the original text, so point into that.
    on_disk = find_in_source(review.original_text, matched)
    if on_disk is not None:
        review.host.select_range(review.doc_id, on_disk[0], on_disk[0] + len(matched))
    console.print(preview)
