"""Loading identification keys from local exports."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from keying.dichotomous.graph import DichotomousKey, KeyLibrary, unwrap_envelope
from keying.entities.errors import SchemaViolation
from keying.matrix.codec import parse_lucid_bundle
from keying.matrix.dataset import MultiAccessDataset
from keying.observability.issues import IssueKind, IssueLog, record_issue
from keying.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)

_LUCID_MARKER = "var key"


@dataclass(slots=True)
class KeyListing:
    """Catalogue row describing one multi-access key file."""

    id: str
    title: str
    path: Path
    entities: int
    characters: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "path": str(self.path),
            "entities": self.entities,
            "characters": self.characters,
        }


def _read_text(source: Path) -> str:
    try:
        return source.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SchemaViolation(f"{source.name} is not valid UTF-8: {exc}", source=str(source)) from exc


def read_json(path: Path | str) -> Any:
    """Read a JSON document, raising :class:`SchemaViolation` on malformed input."""

    source = Path(path)
    text = _read_text(source)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"{source.name} is not valid JSON: {exc}", source=str(source)) from exc


def read_multi_access_payload(path: Path | str) -> Dict[str, Any]:
    """Return the raw key object from a complete JSON export or a Lucid JS bundle."""

    source = Path(path)
    text = _read_text(source)
    if source.suffix == ".js" or text.lstrip().startswith(_LUCID_MARKER):
        return parse_lucid_bundle(text)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"{source.name} is not valid JSON: {exc}", source=str(source)) from exc
    if not isinstance(payload, dict):
        raise SchemaViolation(f"{source.name} must contain a JSON object", source=str(source))
    return payload


def load_multi_access_key(path: Path | str, issues: IssueLog | None = None) -> MultiAccessDataset:
    """Load and index one multi-access key file.

    Raises:
        FileNotFoundError: when ``path`` does not exist.
        SchemaViolation: when the file cannot be used as a key.
    """

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Multi-access key not found: {source}")
    payload = read_multi_access_payload(source)
    return MultiAccessDataset.from_payload(payload, key_id=source.name, issues=issues)


def list_multi_access_keys(
    directory: Path | str,
    pattern: str = "key-*-complete.json",
    issues: IssueLog | None = None,
) -> List[KeyListing]:
    """Describe every key file in ``directory`` matching ``pattern``, ordered by title."""

    root = Path(directory)
    if not root.is_dir():
        _LOGGER.warning("Multi-access key directory missing", directory=str(root))
        return []

    listings: List[KeyListing] = []
    for path in sorted(root.glob(pattern)):
        try:
            payload = read_multi_access_payload(path)
        except (SchemaViolation, OSError) as exc:
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason=str(exc),
                source=path.name,
            )
            continue
        entities = payload.get("entities")
        features = payload.get("features")
        listings.append(
            KeyListing(
                id=path.name,
                title=str(payload.get("title") or path.name),
                path=path,
                entities=len(entities) if isinstance(entities, list) else 0,
                characters=len(features) if isinstance(features, list) else 0,
            )
        )
    listings.sort(key=lambda listing: (listing.title.casefold(), listing.id))
    return listings


def load_key_library(directory: Path | str, issues: IssueLog | None = None) -> KeyLibrary:
    """Index every ``*.json`` dichotomous key in ``directory``.

    Files that are unreadable or structurally broken are skipped with a warning;
    the remaining keys are still available.
    """

    root = Path(directory)
    raw_keys: Dict[str, Any] = {}
    built: Dict[str, DichotomousKey] = {}
    if not root.is_dir():
        _LOGGER.warning("Dichotomous key directory missing", directory=str(root))
        return KeyLibrary(raw_keys, issues=issues)

    for path in sorted(root.glob("*.json")):
        try:
            payload = read_json(path)
            key = DichotomousKey.from_payload(payload, key_id=path.stem, issues=issues)
        except (SchemaViolation, OSError) as exc:
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason=f"skipped key file: {exc}",
                source=path.name,
            )
            continue
        if key.key_id in raw_keys:
            _LOGGER.warning("Duplicate key id; keeping first file", key_id=key.key_id, file=path.name)
            continue
        raw_keys[key.key_id] = unwrap_envelope(payload)
        built[key.key_id] = key

    _LOGGER.info("Loaded dichotomous keys", directory=str(root), keys=len(raw_keys))
    return KeyLibrary(raw_keys, issues=issues, prebuilt=built)


__all__ = [
    "KeyListing",
    "read_json",
    "read_multi_access_payload",
    "load_multi_access_key",
    "list_multi_access_keys",
    "load_key_library",
]
