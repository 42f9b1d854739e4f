"""CLI entry point for revbuddy.

Commands:
  load     — attach a review session JSON to a document
  list     — documents with a review in progress
  status   — findings and their decisions for a document
  show     — one finding in detail, with a preview of where it lands
  accept   — accept a finding (or one of its options)
  ignore   — ignore a finding
  summary  — document-level summary and doc comments
  export   — write out the document with accepted edits applied
  fix      — ask an LLM for a rewrite of a suggestion-only finding
  init     — interactive setup wizard
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from revbuddy_cli.commands.decide import accept_cmd, ignore_cmd
from revbuddy_cli.commands.export import export_cmd
from revbuddy_cli.commands.fix import fix_cmd
from revbuddy_cli.commands.init import init_cmd
from revbuddy_cli.commands.review import list_cmd, show_cmd, status_cmd
from revbuddy_cli.commands.session import load_cmd, summary_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .revbuddy.yml settings.

    Store selection hierarchy:
      store: gist   → GistStore   (requires gist_id and github_token)
      store: memory → MemoryStore (nothing survives the process)
      (default)     → SQLiteStore (store_path or .revbuddy.db)

    This factory lives in cli.py so neither revbuddy_core nor revbuddy_store
    know about the CLI config format.
    """
    from revbuddy_store.sqlite import SQLiteStore

    store_type = config.get("store", "sqlite")

    if store_type == "gist":
        from revbuddy_store.gist import GistStore

        gist_id = config.get("gist_id")
        token = config.get("github_token")
        if gist_id and token:
            return GistStore(gist_id=gist_id, token=token)
        console.print("[yellow]GistStore requires gist_id and a GitHub token. Falling back to SQLite.[/yellow]")

    if store_type == "memory":
        from revbuddy_store.memory import MemoryStore

        return MemoryStore()

    return SQLiteStore(db_path=config.get("store_path") or ".revbuddy.db")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("revbuddy"),
    prog_name="revbuddy",
)
@click.option(
    "--config",
    "config_path",
    default=".revbuddy.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVBUDDY_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Review LLM-proposed edits against a document and apply them safely."""
    from revbuddy_core.config import load_config
    from revbuddy_cli.auth import resolve_github_token
    from revbuddy_cli.host import FileHost, Workspace

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (ValueError, OSError) as e:
        raise click.UsageError(str(e))

    # The GitHub token is only needed by the Gist store.
    if config.get("store") == "gist" and not config.get("github_token"):
        config["github_token"] = resolve_github_token()

    store = _build_store(config)
    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.obj["workspace"] = Workspace(FileHost(store))
    ctx.call_on_close(store.close)


main.add_command(load_cmd)
main.add_command(list_cmd)
main.add_command(status_cmd)
main.add_command(show_cmd)
main.add_command(accept_cmd)
main.add_command(ignore_cmd)
main.add_command(summary_cmd)
main.add_command(export_cmd)
main.add_command(fix_cmd)
main.add_command(init_cmd)
