"""Data maintenance commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from keying.sources import build_web_bundle

from .common import console, get_state

app = typer.Typer(
    add_completion=False,
    help="Prepare key data for other front ends.",
    no_args_is_help=True,
)


def _bundle_command(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        help="Directory receiving the bundle (defaults to <output_dir>/web-data).",
        show_default=False,
    ),
) -> None:
    state = get_state(ctx)
    with console.status("Building web data bundle..."):
        report = build_web_bundle(state.settings, output_dir)

    table = Table(title="Web data bundle", show_header=False, box=None)
    table.add_row("Output", str(report.output_dir))
    table.add_row("Dichotomous keys", ", ".join(report.dichotomous_keys) or "-")
    table.add_row("Multi-access keys", str(len(report.multi_access_keys)))
    console.print(table)
    for missing in report.missing:
        console.print(f"[yellow]Missing input:[/yellow] {missing}")
    console.print("[green]Web data bundle generated.[/green]")


app.command("bundle")(_bundle_command)
