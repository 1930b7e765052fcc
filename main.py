"""Run the keying CLI from a source checkout: ``python main.py multi list``."""

from __future__ import annotations

import sys
from typing import Sequence

import typer

from keying.cli.main import app


def main(argv: Sequence[str] | None = None) -> int:
    arguments = list(sys.argv[1:] if argv is None else argv)
    try:
        result = app(prog_name="keying", args=arguments, standalone_mode=False)
    except typer.Exit as exc:
        return exc.exit_code
    except typer.Abort:
        # Ctrl-C or end of input at a prompt
        typer.echo("\nAborted.", err=True)
        return 130
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
