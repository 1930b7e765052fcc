"""General-purpose helpers shared by loaders and front ends."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .logging import get_logger

_LOGGER = get_logger(module=__name__)


def coerce_identifier(value: Any) -> str | None:
    """Normalise a source identifier to a stripped string.

    Exported keys mix integer and string identifiers for the same entity, so
    every lookup key is stored as text. ``None`` and blank values yield ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def clean_text(value: Any) -> str:
    """Return ``value`` as stripped text, treating ``None`` as empty."""

    if value is None:
        return ""
    return str(value).strip()


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def write_json(data: object, destination: Path | str, *, indent: int | None = 2) -> Path:
    """Write ``data`` as UTF-8 JSON through a sibling temp file, then swap it in.

    A front end reading the bundle never sees a half-written file.
    """

    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    staging = dest_path.with_name(f".{dest_path.name}.tmp")
    staging.write_text(json.dumps(data, indent=indent, ensure_ascii=False) + "\n", encoding="utf-8")
    staging.replace(dest_path)
    _LOGGER.debug("Wrote JSON", path=str(dest_path), size=dest_path.stat().st_size)
    return dest_path


__all__ = ["coerce_identifier", "clean_text", "ensure_directory", "write_json"]
