"""Typer application for the ``keying`` command."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import typer
from rich.table import Table

from keying.entities.errors import KeyingError

from . import data, dichotomous, multiaccess
from .common import CLIError, configure_state, console, parse_override

ErrorRenderer = Callable[[BaseException], int]


class KeyingTyper(typer.Typer):
    """Typer app that turns known exceptions into a message and an exit code.

    Renderers are matched in registration order, so register the most specific
    exception types first.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._renderers: List[Tuple[Type[BaseException], ErrorRenderer]] = []

    def renders(self, *exception_types: Type[BaseException]) -> Callable[[ErrorRenderer], ErrorRenderer]:
        def decorator(renderer: ErrorRenderer) -> ErrorRenderer:
            for exception_type in exception_types:
                self._renderers.append((exception_type, renderer))
            return renderer

        return decorator

    def renderer_for(self, exception: BaseException) -> ErrorRenderer | None:
        for exception_type, renderer in self._renderers:
            if isinstance(exception, exception_type):
                return renderer
        return None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except (KeyboardInterrupt, typer.Exit, SystemExit):
            raise
        except Exception as exc:  # pragma: no cover - CLI surface behaviour
            renderer = self.renderer_for(exc)
            if renderer is None:
                raise
            raise typer.Exit(code=renderer(exc)) from exc


app = KeyingTyper(
    add_completion=False,
    help="""
    Identify specimens with multi-access matrix keys or linked dichotomous keys,
    and prepare key data for other front ends.
    """.strip(),
    no_args_is_help=True,
)


@app.renders(CLIError)
def render_cli_error(exception: BaseException) -> int:
    console.print(f"[bold red]Error:[/bold red] {exception}")
    return 2


@app.renders(KeyingError)
def render_key_error(exception: BaseException) -> int:
    """Key data problems that escaped a command; the log file has the details."""

    console.print(f"[bold red]Key data error ({type(exception).__name__}):[/bold red] {exception}")
    return 1


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Configuration environment (development, testing, production).",
        show_default=False,
    ),
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        help="Directory holding default.yaml and the environment YAML files.",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Setting or policy override such as multi_access.results_threshold=3 (repeatable).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level and print the resolved data locations.",
    ),
) -> None:
    """Resolve settings and logging before any subcommand runs."""

    overrides = [parse_override(item) for item in override]
    if config_dir is not None:
        overrides.append({"config_dir": str(config_dir)})
    configure_state(ctx, environment=environment, overrides=overrides, verbose=verbose)

    if verbose:
        settings = ctx.obj.settings
        locations: Dict[str, str] = {
            "Environment": settings.environment,
            "Policy version": settings.policy_version,
            "Multi-access keys": str(settings.multi_access_dir),
            "Dichotomous keys": str(settings.dichotomous_dir),
            "Log file": str(settings.log_file),
        }
        table = Table(title="keying", show_header=False, box=None)
        for label, value in locations.items():
            table.add_row(label, value)
        console.print(table)


app.add_typer(multiaccess.app, name="multi", help="Multi-access (matrix) keys")
app.add_typer(dichotomous.app, name="key", help="Dichotomous keys")
app.add_typer(data.app, name="data", help="Key data bundles")
