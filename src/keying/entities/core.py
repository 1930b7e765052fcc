"""Core domain entities shared by multi-access and dichotomous keys."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keying.utils.helpers import clean_text, coerce_identifier

_PROFILE_PATH_MARKER = "/flora/taxon/"


class CharacterKind(IntEnum):
    """Character ``type`` codes used by exported multi-access keys."""

    GROUPING = 0
    DISCRETE = 1
    NUMERIC = 2

    @property
    def label(self) -> str:
        return self.name.lower()


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True)


def _require_identifier(value: Any) -> str:
    identifier = coerce_identifier(value)
    if identifier is None:
        raise ValueError("identifier must be a non-empty value")
    return identifier


class Taxon(_Entity):
    """A candidate outcome of a multi-access key."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    url: str | None = Field(default=None, description="External profile reference.")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _require_identifier(value)

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any]) -> "Taxon":
        """Build a taxon from a raw ``entities`` record.

        Raw records may name the taxon through ``name`` or ``title`` and carry the
        profile link either as ``url`` or inside the ``text`` link list.
        """

        identifier = _require_identifier(entity.get("id"))
        name = clean_text(entity.get("name")) or clean_text(entity.get("title")) or f"Taxon {identifier}"
        url = clean_text(entity.get("url")) or None
        if url is None:
            for link in entity.get("text") or []:
                path = link.get("path") if isinstance(link, Mapping) else None
                if isinstance(path, str) and _PROFILE_PATH_MARKER in path:
                    url = path
                    break
        return cls(id=identifier, name=name, url=url)


class Character(_Entity):
    """An observable trait in a multi-access key."""

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    kind: CharacterKind
    parent: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _require_identifier(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return clean_text(value)

    @field_validator("parent", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> str | None:
        return coerce_identifier(value)

    @property
    def is_question(self) -> bool:
        """Whether the character can be asked (grouping characters cannot)."""

        return self.kind in (CharacterKind.DISCRETE, CharacterKind.NUMERIC)


class State(_Entity):
    """One discrete value of a character.

    ``position`` is the declaration-order index among the character's states and
    is the value compared against score matrix codes.
    """

    id: str = Field(..., min_length=1)
    character_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    position: int = Field(..., ge=0)

    @field_validator("id", "character_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> str:
        return _require_identifier(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return clean_text(value)

    @property
    def label(self) -> str:
        return self.name or f"State {self.id}"


class Item(_Entity):
    """Terminal outcome of a dichotomous key branch."""

    item_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    url: str | None = None
    to_key: str | None = Field(
        default=None,
        description="Identifier of another key this outcome continues into.",
    )

    @field_validator("item_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _require_identifier(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return clean_text(value)

    @field_validator("url", mode="before")
    @classmethod
    def _blank_url(cls, value: Any) -> str | None:
        return clean_text(value) or None

    @field_validator("to_key", mode="before")
    @classmethod
    def _normalize_to_key(cls, value: Any) -> str | None:
        return coerce_identifier(value)

    @property
    def links_to_key(self) -> bool:
        return self.to_key is not None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Item":
        return cls(
            item_id=record.get("item_id"),
            name=record.get("item_name"),
            url=record.get("url"),
            to_key=record.get("to_key"),
        )


class Lead(_Entity):
    """A branch of a dichotomous key question."""

    lead_id: str = Field(..., min_length=1)
    parent_id: str = Field(..., min_length=1)
    text: str = Field(default="")
    item: str | None = Field(default=None, description="Identifier of the linked terminal item.")

    @field_validator("lead_id", "parent_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> str:
        return _require_identifier(value)

    @field_validator("text", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return clean_text(value)

    @field_validator("item", mode="before")
    @classmethod
    def _normalize_item(cls, value: Any) -> str | None:
        return coerce_identifier(value)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Lead":
        return cls(
            lead_id=record.get("lead_id"),
            parent_id=record.get("parent_id"),
            text=record.get("lead_text"),
            item=record.get("item"),
        )


__all__ = ["CharacterKind", "Taxon", "Character", "State", "Item", "Lead"]
