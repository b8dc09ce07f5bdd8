"""Inspect the suppression baseline of a checkout."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("baseline")
@click.option(
    "--path",
    "repo_path",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, exists=True),
    help="Repository checkout holding the baseline file.",
)
@click.option("--limit", default=50, show_default=True, help="Maximum number of entries to show.")
@click.option("--stale", is_flag=True, help="Only show entries whose file changed since last surfaced.")
@click.pass_context
def baseline_cmd(ctx, repo_path: str, limit: int, stale: bool):
    """Show suggestions neuron has already surfaced for this repository.

    An entry is "current" while its file still hashes to the recorded value;
    such suggestions stay suppressed. "changed" entries may resurface.
    """
    from neuron_core.config import load_config
    from neuron_store.baseline import BaselineStore

    config_path = ctx.obj.get("config_path", ".neuron.yml") if ctx.obj else ".neuron.yml"
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(str(e))
    store = BaselineStore.load(Path(repo_path), config.baseline_path)

    rows = []
    for entry in store.entries:
        current = store.current_hash(entry.path)
        state = "current" if current and current == entry.content_hash else "changed"
        if stale and state == "current":
            continue
        rows.append((entry, state))

    if not rows:
        console.print("[yellow]No baseline entries found.[/yellow]")
        return

    # Most recently updated first, capped at --limit.
    rows.sort(key=lambda r: r[0].updated_at, reverse=True)
    rows = rows[:limit]

    table = Table(title=f"Baseline: {store.file_path}", show_header=True, header_style="bold cyan")
    table.add_column("Suggestion", max_width=60)
    table.add_column("SHA", width=8)
    table.add_column("State", width=8)
    table.add_column("First seen", width=20)
    table.add_column("Updated", width=20)

    _state_style = {"current": "green", "changed": "yellow"}
    for entry, state in rows:
        style = _state_style[state]
        table.add_row(
            entry.fingerprint,
            entry.content_hash[:7] or "-",
            f"[{style}]{state}[/{style}]",
            entry.first_seen_at[:19].replace("T", " "),
            entry.updated_at[:19].replace("T", " "),
        )

    console.print(table)
