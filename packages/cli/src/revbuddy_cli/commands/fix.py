"""fix command — ask an LLM to turn a finding into a concrete edit."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from revbuddy_cli.commands._common import open_review, require_index
from revbuddy_core.autofix import build_fix_request, fix_to_patch, get_fixer, suggestion_edit
from revbuddy_core.patching import apply_patch

console = Console()


@click.command("fix")
@click.argument("document", type=click.Path(dir_okay=False))
@click.argument("index", type=int)
@click.option("--suggestion", "suggestion", type=int, default=None,
              help="Rewrite using suggestion N of the finding (see `revbuddy show`).")
@click.option("--write", is_flag=True, help="Apply the proposed edit to DOCUMENT on disk.")
@click.pass_context
def fix_cmd(ctx, document: str, index: int, suggestion: int | None, write: bool):
    """Propose an edit for finding INDEX of DOCUMENT using the configured LLM.

    Without --suggestion the model rewrites the finding's anchor text in
    place, guided by the finding's suggestions. With --suggestion N the model
    turns that suggestion into an exact edit against the current text.

    The proposal goes through the same unique-anchor check as any other
    patch; it is only written with --write.
    """
    config = ctx.obj["config"]
    review = open_review(ctx, document)
    require_index(review, index)

    try:
        fixer = get_fixer(config)
    except (ValueError, ImportError) as e:
        raise click.UsageError(str(e))

    finding = review.doc.findings[index]
    meta = review.doc.meta_for(index)
    text = review.effective_text()

    if suggestion is not None:
        suggestions = meta.suggestions or []
        if not 0 <= suggestion < len(suggestions):
            raise click.BadParameter(f"finding {index} has no suggestion {suggestion}", param_hint="--suggestion")
        edit = suggestion_edit(finding, meta, suggestions[suggestion])
        console.print(f"[dim]Asking {fixer.__class__.__name__} to apply suggestion {suggestion}...[/dim]")
        result = fixer.apply_suggestion(edit, text)
    else:
        request = build_fix_request(
            text,
            finding.patch.anchor,
            meta.suggestions,
            context_chars=config.get("fix_context_chars", 300),
        )
        if request is None:
            raise click.ClickException(f"The text of finding {index} is not in the current document.")
        console.print(f"[dim]Asking {fixer.__class__.__name__} for a fix...[/dim]")
        result = fixer.quick_fix(request)

    patch = fix_to_patch(result)
    if patch is None:
        raise click.ClickException(f"No usable edit: {result.reason}")
    if patch.is_noop:
        console.print("[green]The model suggests no change.[/green]")
        return

    console.print(f"[red]- {escape(patch.from_)}[/red]")
    console.print(f"[green]+ {escape(patch.to)}[/green]")

    if not write:
        check = apply_patch(text, patch)
        if not check.ok:
            console.print(f"[yellow]⚠ This edit would not apply: {check.reason}[/yellow]")
        else:
            console.print("[dim]Run again with --write to apply it.[/dim]")
        return

    # Accepted edits are derived from the file on every run, so the rewrite
    # goes into the file itself.
    on_disk = review.host.read_document_text(review.doc_id)
    applied = apply_patch(on_disk, patch)
    if not applied.ok:
        raise click.ClickException(f"Cannot apply the edit: {applied.reason}")
    review.host.write_document_text(review.doc_id, applied.text)
    review.original_text = applied.text
    if not review.state.is_decided(index):
        review.ignore(index)
    console.print(f"[green]✔ Wrote the edit to {review.doc_id}; finding {index} is done.[/green]")
