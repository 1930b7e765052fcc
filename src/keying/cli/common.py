"""State and helpers shared by the keying subcommands."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable

import typer
from rich.console import Console
from rich.table import Table

from keying.config.overrides import decode_scalar, deep_merge, nest
from keying.config.settings import Settings
from keying.observability import IssueLog
from keying.utils.logging import configure_logging, get_logger

console = Console()
_LOGGER = get_logger(module=__name__)


class CLIError(RuntimeError):
    """A problem the user can fix; shown without a traceback."""


@dataclass(slots=True)
class CLIState:
    """Resolved settings plus the issue log shared by one CLI invocation."""

    settings: Settings
    overrides: Dict[str, Any]
    verbose: bool = False
    issues: IssueLog = field(default_factory=IssueLog)

    @property
    def environment(self) -> str:
        return self.settings.environment


def parse_override(argument: str) -> Dict[str, Any]:
    """Turn ``multi_access.results_threshold=3`` into a nested mapping.

    Values are JSON-decoded when they parse (``[2, 4]``, ``true``), otherwise kept
    as text, so paths need no quoting.
    """

    dotted, separator, raw = argument.partition("=")
    if not separator:
        raise typer.BadParameter(f"Expected KEY=VALUE, got {argument!r}")
    path = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not path:
        raise typer.BadParameter(f"Override {argument!r} has an empty key")
    return nest(path, decode_scalar(raw))


def merge_overrides(overrides: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Fold overrides left to right; later values win, nested keys merge."""

    merged: Dict[str, Any] = {}
    for override in overrides:
        merged = deep_merge(merged, override)
    return merged


def resolve_settings(environment: str | None, overrides: Dict[str, Any]) -> Settings:
    payload = dict(overrides)
    if environment:
        payload["environment"] = environment
    try:
        return Settings(**payload)
    except ValueError as exc:
        raise CLIError(f"Invalid configuration: {exc}") from exc


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Dict[str, Any]],
    verbose: bool,
) -> CLIState:
    """Resolve settings, install log sinks and attach :class:`CLIState` to ``ctx``."""

    merged = merge_overrides(overrides)
    settings = resolve_settings(environment, merged)
    configure_logging(
        settings,
        console_level="DEBUG" if verbose else "WARNING",
        file_level="DEBUG" if verbose else None,
    )
    _LOGGER.debug("CLI configured", environment=settings.environment, overrides=merged)
    ctx.obj = CLIState(settings=settings, overrides=merged, verbose=verbose)
    return ctx.obj


def get_state(ctx: typer.Context) -> CLIState:
    """Return the :class:`CLIState` installed by the root callback."""

    if not isinstance(ctx.obj, CLIState):
        raise CLIError("CLI context is not initialised; invoke commands through the keying app")
    return ctx.obj


def report_issues(state: CLIState) -> None:
    """Summarise load problems recorded so far; list each one when verbose."""

    if not len(state.issues):
        return
    snapshot = state.issues.snapshot()
    counts = ", ".join(f"{kind}: {count}" for kind, count in snapshot.by_kind.items())
    console.print(f"[yellow]{snapshot.total} load issue(s) recorded ({counts}).[/yellow]")
    if not state.verbose:
        return
    table = Table(box=None)
    table.add_column("Kind")
    table.add_column("Source")
    table.add_column("Item")
    table.add_column("Reason")
    for issue in snapshot.items:
        table.add_row(issue.kind.value, issue.source or "-", issue.item_id or "-", issue.reason)
    console.print(table)


def existing_path(path: str | Path) -> Path:
    target = Path(path).expanduser().resolve()
    if not target.exists():
        raise CLIError(f"Path does not exist: {target}")
    return target


__all__ = [
    "console",
    "CLIError",
    "CLIState",
    "parse_override",
    "merge_overrides",
    "resolve_settings",
    "configure_state",
    "get_state",
    "report_issues",
    "existing_path",
]
