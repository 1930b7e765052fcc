"""Domain entities for identification keys."""

from .core import Character, CharacterKind, Item, Lead, State, Taxon
from .errors import DecodeFailure, KeyingError, SchemaViolation, UnknownKey

__all__ = [
    "CharacterKind",
    "Taxon",
    "Character",
    "State",
    "Item",
    "Lead",
    "KeyingError",
    "SchemaViolation",
    "DecodeFailure",
    "UnknownKey",
]
