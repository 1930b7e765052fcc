"""Static data bundle consumed by the browser front end."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from keying.config.settings import Settings
from keying.dichotomous.graph import unwrap_envelope
from keying.entities.errors import SchemaViolation
from keying.utils.helpers import ensure_directory, write_json
from keying.utils.logging import get_logger

from .io import read_json

_LOGGER = get_logger(module=__name__)

DICHOTOMOUS_BUNDLE = "dichotomous-keys.json"
MULTI_ACCESS_BUNDLE = "multi-keys.json"
CONFIG_SNAPSHOT = "config.json"


@dataclass(slots=True)
class BundleReport:
    """Files written by :func:`build_web_bundle` and the inputs it skipped."""

    output_dir: Path
    dichotomous_keys: List[str] = field(default_factory=list)
    multi_access_keys: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "dichotomous_keys": list(self.dichotomous_keys),
            "multi_access_keys": list(self.multi_access_keys),
            "missing": list(self.missing),
        }


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _collect(directory: Path, file_names: List[str], report: BundleReport) -> Dict[str, Any]:
    collected: Dict[str, Any] = {}
    for name in file_names:
        path = directory / name
        if not path.exists():
            _LOGGER.warning("Bundle input missing", path=str(path))
            report.missing.append(str(path))
            continue
        try:
            collected[name] = read_json(path)
        except SchemaViolation as exc:
            _LOGGER.warning("Bundle input unreadable", path=str(path), error=str(exc))
            report.missing.append(str(path))
    return collected


def build_web_bundle(settings: Settings, output_dir: Path | str | None = None) -> BundleReport:
    """Write the dichotomous and multi-access key bundles plus a config snapshot."""

    sources = settings.policies.sources
    target = ensure_directory(output_dir or Path(settings.paths.output_dir) / "web-data")
    report = BundleReport(output_dir=target)

    raw_dichotomous = _collect(
        settings.dichotomous_dir,
        [f"{key_id}.json" for key_id in sources.bundle_dichotomous_keys],
        report,
    )
    dichotomous = {Path(name).stem: unwrap_envelope(payload) for name, payload in raw_dichotomous.items()}
    write_json({"generatedAt": _timestamp(), "keys": dichotomous}, target / DICHOTOMOUS_BUNDLE)
    report.dichotomous_keys = list(dichotomous)

    multi = _collect(settings.multi_access_dir, list(sources.bundle_multi_access_keys), report)
    write_json({"generatedAt": _timestamp(), "keys": multi}, target / MULTI_ACCESS_BUNDLE)
    report.multi_access_keys = list(multi)

    write_json(
        {
            "dichotomousKeys": list(sources.bundle_dichotomous_keys),
            "multiAccessKeys": list(sources.bundle_multi_access_keys),
        },
        target / CONFIG_SNAPSHOT,
    )
    _LOGGER.info(
        "Web data bundle generated",
        output_dir=str(target),
        dichotomous=len(dichotomous),
        multi_access=len(multi),
        missing=len(report.missing),
    )
    return report


__all__ = [
    "BundleReport",
    "build_web_bundle",
    "DICHOTOMOUS_BUNDLE",
    "MULTI_ACCESS_BUNDLE",
    "CONFIG_SNAPSHOT",
]
