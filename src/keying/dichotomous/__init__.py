"""Dichotomous keys: lead graphs and the cross-key navigator."""

from .graph import DichotomousKey, KeyLibrary, unwrap_envelope
from .navigator import (
    BackResult,
    ChoiceKind,
    ChoiceResult,
    Header,
    KeyFrame,
    KeyNavigator,
    Option,
)

__all__ = [
    "DichotomousKey",
    "KeyLibrary",
    "unwrap_envelope",
    "BackResult",
    "ChoiceKind",
    "ChoiceResult",
    "Header",
    "KeyFrame",
    "KeyNavigator",
    "Option",
]
