"""load and summary commands — attach a session to a document and read its overview."""

from __future__ import annotations

import click
from rich.console import Console

from revbuddy_cli.commands._common import open_review, severity_markup
from revbuddy_cli.host import document_id
from revbuddy_core.models import NormalizeError

console = Console()


@click.command("load")
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.argument("session_file", type=click.File("r", encoding="utf-8"))
@click.option("--force", "-f", is_flag=True, help="Replace a review already in progress without asking.")
@click.pass_context
def load_cmd(ctx, document: str, session_file, force: bool):
    """Attach the review session in SESSION_FILE (or - for stdin) to DOCUMENT.

    Any review already in progress for DOCUMENT is replaced, including its
    accept/ignore decisions.
    """
    workspace = ctx.obj["workspace"]
    try:
        raw = session_file.read()
    except UnicodeDecodeError:
        raise click.ClickException(f"Cannot read {session_file.name}: it is not UTF-8 text")

    if not force and workspace.host.load_state(document_id(document)) is not None:
        click.confirm(f"{document} already has a review in progress. Replace it?", abort=True)

    try:
        result = workspace.load_session(document, raw)
    except UnicodeDecodeError:
        raise click.ClickException(f"Cannot read {document}: it is not UTF-8 text")
    if isinstance(result, NormalizeError):
        raise click.ClickException(f"Invalid session: {result.error}")

    findings = result.doc.findings
    suggestion_only = sum(1 for i in range(len(findings)) if result.doc.meta_for(i).has_patch is False)
    with_options = sum(1 for i in range(len(findings)) if result.doc.meta_for(i).has_options)
    console.print(
        f"[green]Loaded session [bold]{result.doc.session.session_id}[/bold] for {result.doc_id}: "
        f"{len(findings)} finding(s)[/green]"
    )
    if suggestion_only or with_options:
        console.print(f"  {suggestion_only} suggestion-only, {with_options} with several options")


@click.command("summary")
@click.argument("document", type=click.Path(dir_okay=False))
@click.pass_context
def summary_cmd(ctx, document: str):
    """Show the document-level summary and doc comments of the session."""
    review = open_review(ctx, document)
    summary = review.doc.summary
    doc_comments = review.doc.doc_comments or []

    if summary is None and not doc_comments:
        console.print("[yellow]This session has no summary or doc comments.[/yellow]")
        return

    if summary is not None:
        console.print("\n[bold]Summary[/bold]")
        if summary.big_picture:
            console.print(summary.big_picture)
        for title, items in (("What improved", summary.what_improved), ("Top risks", summary.top_risks)):
            if items:
                console.print(f"\n[bold]{title}[/bold]")
                for item in items:
                    console.print(f"  • {item}")
        if summary.recommended_next_pass:
            console.print("\n[bold]Recommended next pass[/bold]")
            console.print(summary.recommended_next_pass)

    if doc_comments:
        console.print(f"\n[bold]Doc comments ({len(doc_comments)})[/bold]")
        for dc in doc_comments:
            header = " ".join(p for p in (dc.agent_id or "", severity_markup(dc.severity)) if p)
            if header:
                console.print(header)
            if dc.comment:
                console.print(f"  {dc.comment}")
            if dc.anchor_quote:
                console.print(f"  [dim]“{dc.anchor_quote}”[/dim]")
            if dc.rationale:
                console.print(f"  [italic]{dc.rationale}[/italic]")
            if dc.patch is not None:
                console.print(f"  [red]- {dc.patch.from_}[/red]")
                console.print(f"  [green]+ {dc.patch.to}[/green]")
            for s in dc.suggestions or []:
                console.print(f"  → {s}")
            console.print()
