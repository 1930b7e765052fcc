"""Dichotomous key commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import typer

from keying.dichotomous import BackResult, ChoiceKind, KeyNavigator
from keying.entities.errors import SchemaViolation, UnknownKey
from keying.sources import load_key_library
from keying.utils.logging import logging_context

from .common import CLIError, console, get_state, report_issues

app = typer.Typer(
    add_completion=False,
    help="Navigate dichotomous keys, following links between keys.",
    no_args_is_help=True,
)


def _print_header(navigator: KeyNavigator) -> None:
    header = navigator.header()
    console.print(f"\n[bold]{header.key_title}[/bold]")
    if header.scope:
        console.print(f"Scope: {header.scope}")
    if header.depth > 1:
        console.print(f"Nested key depth: {header.depth}")
    console.print("Commands: number = choose, b = back, r = restart, q = quit\n")


def _print_options(navigator: KeyNavigator) -> None:
    console.print("=" * 40)
    for option in navigator.options():
        console.print(f"{option.index + 1}. {option.lead.text}")
        if option.item is not None:
            link = f" (see key {option.item.to_key})" if option.has_link else ""
            console.print(f"   -> {option.item.name}{link}")


def _step_back(navigator: KeyNavigator) -> None:
    if navigator.back() is BackResult.AT_START:
        console.print("Already at start.")


def run_navigation(navigator: KeyNavigator) -> None:
    """Prompt through ``navigator`` until the user quits."""

    shown: Tuple[str, int] | None = None
    while True:
        header = navigator.header()
        if shown != (header.key_id, header.depth):
            _print_header(navigator)
            shown = (header.key_id, header.depth)

        if navigator.is_dead_end:
            console.print("\n(No leads here. b to back, r to restart, q to quit)")
            answer = typer.prompt(">").strip().lower()
            if answer == "q":
                return
            if answer == "b":
                _step_back(navigator)
            elif answer == "r":
                navigator.reset()
            continue

        _print_options(navigator)
        answer = typer.prompt("Choose option").strip().lower()
        if answer == "q":
            return
        if answer == "b":
            _step_back(navigator)
            continue
        if answer == "r":
            navigator.reset()
            continue

        try:
            index = int(answer) - 1
        except ValueError:
            index = -1
        result = navigator.choose_option(index)
        if result.kind is ChoiceKind.INVALID_OPTION:
            console.print("Invalid choice")
            continue
        if result.kind is ChoiceKind.CONTINUE:
            continue

        item = result.item
        console.print("-" * 40)
        console.print(f"[bold green]{item.name or 'Result'}[/bold green]")
        if item.url:
            console.print(item.url)
        if result.kind is ChoiceKind.KEY_TRANSITION:
            console.print(f"Leads to key {item.to_key}: {result.key.title}")
            continue
        if result.kind is ChoiceKind.MISSING_KEY:
            console.print(f"[yellow]Linked key {item.to_key} not found in dataset.[/yellow]")
        elif result.kind is ChoiceKind.DEPTH_EXCEEDED:
            console.print(f"[yellow]{result.message}[/yellow]")

        follow_up = typer.prompt(
            "Enter to continue, q to quit, r to restart", default="", show_default=False
        ).strip().lower()
        if follow_up == "q":
            return
        if follow_up == "r":
            navigator.reset()


def _navigate_command(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        help="Directory of exported dichotomous keys (defaults to configuration).",
        show_default=False,
    ),
    start_key: Optional[str] = typer.Option(
        None,
        "--start-key",
        help="Key to start from (defaults to configuration).",
        show_default=False,
    ),
) -> None:
    state = get_state(ctx)
    directory = data_dir or state.settings.dichotomous_dir
    library = load_key_library(directory, issues=state.issues)
    report_issues(state)
    if not len(library):
        raise CLIError(f"No JSON key exports found in {directory}")

    policy = state.settings.policies.dichotomous
    try:
        navigator = KeyNavigator(library, start_key_id=start_key, policy=policy)
    except (UnknownKey, SchemaViolation) as exc:
        raise CLIError(f"Cannot start navigation: {exc}") from exc

    with logging_context(key=navigator.start_key_id, step="navigate"):
        run_navigation(navigator)


app.command("navigate")(_navigate_command)
