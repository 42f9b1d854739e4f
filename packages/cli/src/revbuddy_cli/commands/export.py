"""export command — write out the document with every accepted edit applied."""

from __future__ import annotations

import click
from rich.console import Console

from revbuddy_cli.commands._common import open_review

console = Console(stderr=True)


@click.command("export")
@click.argument("document", type=click.Path(dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None,
              help="Write the result to this file instead of stdout.")
@click.option("--in-place", is_flag=True, help="Overwrite DOCUMENT and end its review.")
@click.pass_context
def export_cmd(ctx, document: str, output: str | None, in_place: bool):
    """Print DOCUMENT as it reads with all accepted findings applied.

    Accepted edits are replayed in finding order against the original text.
    With --in-place the document is overwritten and the stored review is
    dropped, since its anchors were taken against the old text.
    """
    if output and in_place:
        raise click.UsageError("--output and --in-place are mutually exclusive.")

    review = open_review(ctx, document)
    replayed = review.current()
    if replayed.skipped:
        skipped = ", ".join(str(i) for i in replayed.skipped)
        console.print(f"[yellow]⚠ Accepted finding(s) {skipped} no longer apply and were left out.[/yellow]")

    if in_place:
        review.host.write_document_text(review.doc_id, replayed.text)
        ctx.obj["workspace"].close(review.doc_id, forget=True)
        console.print(f"[green]✔ Wrote {len(replayed.applied)} edit(s) to {review.doc_id}.[/green]")
    elif output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(replayed.text)
        console.print(f"[green]✔ Wrote {len(replayed.applied)} edit(s) to {output}.[/green]")
    else:
        click.echo(replayed.text, nl=False)
