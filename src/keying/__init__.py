"""Top-level package for the keying identification engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("keying")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .dichotomous import KeyLibrary, KeyNavigator
from .matrix import CandidateEngine, MultiAccessDataset

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "MultiAccessDataset",
    "CandidateEngine",
    "KeyLibrary",
    "KeyNavigator",
]
