"""Mapping helpers shared by the settings layers, policy loading and CLI overrides."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Sequence

import yaml


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated by ``override``; nested mappings merge key by key."""

    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        elif isinstance(value, Mapping):
            result[key] = dict(value)
        else:
            result[key] = value
    return result


def decode_scalar(raw: str) -> Any:
    """JSON-decode ``raw`` when possible (``[2, 4]``, ``true``, ``3``), else keep the text."""

    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return raw


def nest(path: Sequence[str], value: Any) -> Dict[str, Any]:
    """Build ``{"a": {"b": value}}`` from ``["a", "b"]``."""

    if not path:
        raise ValueError("override path must not be empty")
    nested: Any = value
    for segment in reversed(path):
        nested = {segment: nested}
    return nested


def read_yaml_mapping(path: Path, *, required: bool = False) -> Dict[str, Any]:
    """Load a YAML file whose top level must be a mapping.

    Missing files yield ``{}`` unless ``required`` is set.
    """

    if not path.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, MutableMapping):
        raise ValueError(f"Configuration file '{path}' must contain a mapping at the top level")
    return dict(loaded)


def env_overrides(prefix: str, environ: Mapping[str, str] | None = None) -> Iterable[Dict[str, Any]]:
    """Yield one nested override per ``<prefix>A__B=value`` variable.

    Segments are lowercased and values pass through :func:`decode_scalar`.
    """

    source = os.environ if environ is None else environ
    for key in sorted(source):
        if not key.startswith(prefix):
            continue
        path = [segment.lower() for segment in key[len(prefix) :].split("__") if segment]
        if path:
            yield nest(path, decode_scalar(source[key]))


def apply_env_overrides(base: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    """Merge every ``prefix`` environment override into ``base``.

    A variable that descends through a non-mapping value is rejected rather than
    silently replacing it.
    """

    result = dict(base)
    for override in env_overrides(prefix):
        _check_descends_through_mappings(result, override, prefix)
        result = deep_merge(result, override)
    return result


def _check_descends_through_mappings(base: Mapping[str, Any], override: Mapping[str, Any], prefix: str) -> None:
    cursor: Any = base
    node: Any = override
    trail = []
    while isinstance(node, Mapping) and len(node) == 1:
        segment, node = next(iter(node.items()))
        trail.append(segment)
        if not isinstance(node, Mapping):
            return
        cursor = cursor.get(segment) if isinstance(cursor, Mapping) else None
        if cursor is not None and not isinstance(cursor, Mapping):
            raise ValueError(
                f"Cannot apply {prefix}{'__'.join(trail).upper()}: "
                f"'{'.'.join(trail)}' is not a mapping"
            )


__all__ = [
    "deep_merge",
    "decode_scalar",
    "nest",
    "read_yaml_mapping",
    "env_overrides",
    "apply_env_overrides",
]
