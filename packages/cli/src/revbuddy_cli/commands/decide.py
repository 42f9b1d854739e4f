"""accept and ignore commands — record a decision on one finding."""

from __future__ import annotations

import click
from rich.console import Console

from revbuddy_cli.commands._common import open_review

console = Console()


@click.command("accept")
@click.argument("document", type=click.Path(dir_okay=False))
@click.argument("index", type=int)
@click.option("--option", "option", type=int, default=None, help="Accept option N of a multi-option finding.")
@click.pass_context
def accept_cmd(ctx, document: str, index: int, option: int | None):
    """Accept finding INDEX of DOCUMENT.

    The patch is applied against the text produced by every accepted finding
    before it. A patch whose anchor is missing or appears more than once is
    refused and the finding stays pending.
    """
    review = open_review(ctx, document)
    decision = review.accept(index, option)
    if not decision.ok:
        raise click.ClickException(f"Cannot accept finding {index}: {decision.reason}")

    if decision.used_fallback:
        console.print("[yellow]⚠ The quoted span was not found; the edit was applied at its 'from' text.[/yellow]")
    if option is None:
        console.print(f"[green]✔ Accepted finding {index}.[/green]")
    else:
        console.print(f"[green]✔ Accepted option {option} of finding {index}.[/green]")
    _print_next(review)


@click.command("ignore")
@click.argument("document", type=click.Path(dir_okay=False))
@click.argument("index", type=int)
@click.pass_context
def ignore_cmd(ctx, document: str, index: int):
    """Ignore finding INDEX of DOCUMENT. The document text is left alone."""
    review = open_review(ctx, document)
    decision = review.ignore(index)
    if not decision.ok:
        raise click.ClickException(f"Cannot ignore finding {index}: {decision.reason}")
    console.print(f"[dim]Ignored finding {index}.[/dim]")
    _print_next(review)


def _print_next(review) -> None:
    pending = [i for i in range(len(review.doc.findings)) if not review.state.is_decided(i)]
    if not pending:
        console.print("All findings decided. Run `revbuddy export` to write out the result.")
        return
    console.print(f"[dim]{len(pending)} pending; next is {pending[0]}.[/dim]")
