"""init command — interactive setup wizard.

Writes .revbuddy.yml with the auto-fix provider and the store that keeps
review decisions between runs. For the Gist store it also creates the
private Gist through the gh CLI, so nobody needs to touch the GitHub API.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

import click
import yaml
from rich.console import Console

from revbuddy_core.autofix import API_KEY_ENV
from revbuddy_store.gist import GIST_FILENAME

console = Console()
logger = logging.getLogger(__name__)

CONFIG_FILE = ".revbuddy.yml"


@click.command("init")
def init_cmd():
    """Set up revbuddy in the current directory.

    Creates .revbuddy.yml and, for the Gist store, a private Gist that holds
    review state so it follows you across machines.
    """
    console.print("\n[bold cyan]revbuddy init[/bold cyan] — setup wizard\n")

    # --- Choose auto-fix provider ---
    provider = click.prompt(
        "Auto-fix provider",
        type=click.Choice(["anthropic", "openai", "google"]),
        default="anthropic",
    )
    api_key_env = API_KEY_ENV[provider]

    # --- Choose store backend ---
    console.print("\nWhere review decisions are kept:")
    console.print("  [bold]sqlite[/bold]  — local SQLite file (default)")
    console.print("  [bold]gist[/bold]    — private GitHub Gist, shared across machines")
    store_type = click.prompt(
        "Store backend",
        type=click.Choice(["sqlite", "gist"]),
        default="sqlite",
    )

    config: dict = {"autofix_provider": provider}

    if store_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=".revbuddy.db")
        config["store"] = "sqlite"
        if db_path != ".revbuddy.db":
            config["store_path"] = db_path
        console.print(f"[green]SQLite store configured at {db_path}[/green]")

    else:
        gist_id = _create_state_gist()
        if gist_id:
            console.print(f"[green]Created Gist: {gist_id}[/green]")
            config["store"] = "gist"
            config["gist_id"] = gist_id
        else:
            console.print(f"[yellow]Gist creation failed — add gist_id manually to {CONFIG_FILE}[/yellow]")

    _write_config(config)
    console.print(f"[green]Created {CONFIG_FILE}[/green]")

    if not os.environ.get(api_key_env):
        console.print(f"\n[yellow]Set [bold]{api_key_env}[/bold] to use `revbuddy fix`.[/yellow]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Start a review with: [bold]revbuddy load <document> <session.json>[/bold]")


def _create_state_gist() -> str | None:
    """Create a private Gist for review state and return its ID."""
    try:
        # gh names gist files after their path, so the file needs the final name.
        tmp_dir = tempfile.mkdtemp()
        named_path = os.path.join(tmp_dir, GIST_FILENAME)
        with open(named_path, "w", encoding="utf-8") as f:
            f.write("{}")

        try:
            result = subprocess.run(
                ["gh", "gist", "create", "--public=false", "--desc", "revbuddy review state", named_path],
                capture_output=True,
                text=True,
                timeout=15,
            )
        finally:
            os.unlink(named_path)
            os.rmdir(tmp_dir)

        if result.returncode == 0:
            gist_url = result.stdout.strip()
            return gist_url.rstrip("/").split("/")[-1]
        logger.warning("gh gist create failed: %s", result.stderr.strip())
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return None


def _write_config(config: dict) -> None:
    """Write or update .revbuddy.yml, preserving any existing keys."""
    path = Path(CONFIG_FILE)
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
