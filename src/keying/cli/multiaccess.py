"""Multi-access key commands: catalogue, structure report and interactive keying."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from keying.entities.core import Character, CharacterKind
from keying.entities.errors import SchemaViolation
from keying.matrix import CandidateEngine, MultiAccessDataset, SessionStatus
from keying.sources import list_multi_access_keys, load_multi_access_key
from keying.utils.logging import logging_context

from .common import CLIError, console, get_state, report_issues, existing_path

app = typer.Typer(
    add_completion=False,
    help="Browse and run multi-access (matrix) identification keys.",
    no_args_is_help=True,
)

_KIND_MARKERS = {CharacterKind.DISCRETE: "state", CharacterKind.NUMERIC: "value"}


def _load_dataset(ctx: typer.Context, path: Path) -> MultiAccessDataset:
    state = get_state(ctx)
    target = existing_path(path)
    try:
        dataset = load_multi_access_key(target, issues=state.issues)
    except SchemaViolation as exc:
        raise CLIError(f"Cannot use {target.name}: {exc}") from exc
    report_issues(state)
    return dataset


def _render_remaining(engine: CandidateEngine, limit: int) -> None:
    remaining = engine.remaining_taxa(limit=limit)
    if not remaining.total:
        console.print("[red]No taxa match your selections.[/red] Undo a selection and try again.")
        return
    if remaining.total == 1:
        taxon = remaining.sample[0]
        console.print(f"[bold green]Identified:[/bold green] {taxon.name} (ID: {taxon.id})")
        if taxon.url:
            console.print(f"  {taxon.url}")
        return

    table = Table(title=f"{remaining.total} possible taxa", box=None)
    table.add_column("#", justify="right")
    table.add_column("Taxon")
    table.add_column("ID")
    for index, taxon in enumerate(remaining.sample, start=1):
        table.add_row(str(index), taxon.name, taxon.id)
    console.print(table)
    hidden = remaining.total - len(remaining.sample)
    if hidden > 0:
        console.print(f"... and {hidden} more")


def _render_selections(engine: CandidateEngine) -> None:
    details = engine.selections()
    if not details:
        return
    console.print("Your selections:")
    for detail in details:
        console.print(f"  {detail.character_name}: {detail.label}")


def _render_characters(engine: CandidateEngine, characters: List[Character]) -> None:
    dataset = engine.dataset
    table = Table(title=f"Select a character ({len(engine)} taxa remaining)", box=None)
    table.add_column("#", justify="right")
    table.add_column("Character")
    table.add_column("Kind")
    for index, character in enumerate(characters, start=1):
        table.add_row(str(index), dataset.display_name(character.id), _KIND_MARKERS.get(character.kind, ""))
    console.print(table)
    console.print("Commands: number = choose, r = remaining, u = undo, x = reset, q = quit")


def _ask_numeric(engine: CandidateEngine, character: Character) -> bool:
    name = engine.dataset.display_name(character.id)
    raw = typer.prompt(f"{name}: measured value (blank to go back)", default="", show_default=False)
    if not raw.strip():
        return False
    try:
        value = float(raw)
    except ValueError:
        console.print("[red]Enter a number.[/red]")
        return False
    outcome = engine.choose_numeric(character.id, value)
    console.print(f"Selected: {name} = {value:g}")
    console.print(f"Eliminated {outcome.eliminated} taxa, {outcome.remaining} remaining")
    return True


def _ask_state(engine: CandidateEngine, character: Character) -> bool:
    dataset = engine.dataset
    name = dataset.display_name(character.id)
    states = engine.states_for(character.id)
    if not states:
        console.print(f"No states recorded for {name}.")
        return False

    console.print(f"\n{name}")
    for index, state in enumerate(states, start=1):
        console.print(f"{index}. {state.label}")
    console.print("0. Back to character selection")
    choice = typer.prompt("What do you observe?", type=int)
    if choice == 0:
        return False
    if not 1 <= choice <= len(states):
        console.print("[red]Invalid selection.[/red]")
        return False

    selected = states[choice - 1]
    outcome = engine.choose_state(character.id, selected.id)
    console.print(f"Selected: {name} = {selected.label}")
    console.print(f"Eliminated {outcome.eliminated} taxa, {outcome.remaining} remaining")
    return True


def run_session(engine: CandidateEngine, *, results_threshold: int, listing_limit: int) -> SessionStatus:
    """Drive one interactive identification session until it settles or the user quits."""

    while True:
        status = engine.status()
        if status is SessionStatus.NO_MATCH:
            _render_remaining(engine, listing_limit)
            return status
        if len(engine) <= results_threshold:
            _render_remaining(engine, listing_limit)
            if status is SessionStatus.IDENTIFIED:
                return status

        characters = engine.relevant_characters()
        if not characters:
            console.print("No more useful characters to distinguish the remaining taxa.")
            _render_remaining(engine, listing_limit)
            return status

        _render_characters(engine, characters)
        answer = typer.prompt("Select character").strip().lower()
        if answer == "q":
            _render_remaining(engine, listing_limit)
            return engine.status()
        if answer == "r":
            _render_remaining(engine, listing_limit)
            continue
        if answer == "u":
            undone = engine.undo_last()
            if undone is None:
                console.print("Nothing to undo.")
            else:
                console.print(f"Undid {engine.dataset.display_name(undone.character_id)}; {len(engine)} taxa remaining")
            continue
        if answer == "x":
            engine.reset()
            console.print(f"Session reset; {len(engine)} taxa remaining")
            continue

        try:
            index = int(answer) - 1
        except ValueError:
            index = -1
        if not 0 <= index < len(characters):
            console.print("[red]Invalid selection. Please enter a number from the list.[/red]")
            continue

        character = characters[index]
        if character.kind is CharacterKind.NUMERIC:
            applied = _ask_numeric(engine, character)
        else:
            applied = _ask_state(engine, character)
        if applied:
            console.print(f"Progress: {engine.progress():.0%} eliminated")
            _render_selections(engine)


def _list_command(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        help="Directory holding exported multi-access keys (defaults to configuration).",
        show_default=False,
    ),
) -> None:
    state = get_state(ctx)
    directory = data_dir or state.settings.multi_access_dir
    pattern = state.settings.policies.sources.multi_access_pattern
    listings = list_multi_access_keys(directory, pattern, issues=state.issues)
    if not listings:
        console.print(f"[yellow]No key files found in {directory}.[/yellow]")
        return

    table = Table(title="Available identification keys", box=None)
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Taxa", justify="right")
    table.add_column("Characters", justify="right")
    table.add_column("File")
    for index, listing in enumerate(listings, start=1):
        table.add_row(str(index), listing.title, str(listing.entities), str(listing.characters), listing.id)
    console.print(table)
    report_issues(state)


def _analyze_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Multi-access key file (JSON export or Lucid bundle)."),
) -> None:
    dataset = _load_dataset(ctx, path)
    summary = dataset.summary()
    table = Table(title=summary.title, show_header=False, box=None)
    table.add_row("Taxa", str(summary.total_taxa))
    table.add_row("Scored taxa", str(summary.scored_taxa))
    table.add_row("Characters", str(summary.total_characters))
    for kind, count in summary.character_kinds.items():
        table.add_row(f"  {kind}", str(count))
    table.add_row("States", str(summary.total_states))
    table.add_row("Measured characters", str(summary.measured_characters))
    console.print(table)


def _identify_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Multi-access key file to key through."),
) -> None:
    state = get_state(ctx)
    dataset = _load_dataset(ctx, path)
    policy = state.settings.policies.multi_access
    engine = CandidateEngine(dataset, policy)
    console.print(f"\n[bold]{dataset.title}[/bold]")
    console.print(f"{len(dataset.taxa)} taxa, {len(dataset.characters)} characters")
    console.print(f"Starting with {engine.total_taxa} possible taxa\n")

    with logging_context(key=dataset.key_id or "-", step="identify"):
        status = run_session(
            engine,
            results_threshold=policy.results_threshold,
            listing_limit=policy.result_listing_limit,
        )
    console.print(f"Session finished: {status.value}")


app.command("list")(_list_command)
app.command("analyze")(_analyze_command)
app.command("identify")(_identify_command)
