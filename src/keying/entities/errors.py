"""Exceptions raised while loading identification keys."""

from __future__ import annotations


class KeyingError(Exception):
    """Base class for keying failures."""


class SchemaViolation(KeyingError, ValueError):
    """A dataset is missing structure it cannot be used without.

    Fatal for the affected dataset only; other loaded keys are unaffected.
    """

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class DecodeFailure(KeyingError, ValueError):
    """A single compressed matrix cell could not be recovered."""


class UnknownKey(KeyingError, KeyError):
    """A dichotomous key identifier is not present in the library."""

    def __init__(self, key_id: str) -> None:
        super().__init__(key_id)
        self.key_id = key_id

    def __str__(self) -> str:
        return f"Key {self.key_id} not found in dataset"


__all__ = ["KeyingError", "SchemaViolation", "DecodeFailure", "UnknownKey"]
