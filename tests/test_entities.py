"""Unit tests for keying.entities.core."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from keying.entities import Character, CharacterKind, Item, Lead, State, Taxon


def test_taxon_from_entity_normalises_identifier_and_name() -> None:
    taxon = Taxon.from_entity({"id": 17, "title": "Grevillea rosmarinifolia"})

    assert taxon.id == "17"
    assert taxon.name == "Grevillea rosmarinifolia"
    assert taxon.url is None


def test_taxon_from_entity_falls_back_to_placeholder_and_profile_link() -> None:
    taxon = Taxon.from_entity(
        {
            "id": "88",
            "text": [
                {"path": "https://example.org/images/88.jpg"},
                {"path": "https://vicflora.example/flora/taxon/abc"},
            ],
        }
    )

    assert taxon.name == "Taxon 88"
    assert taxon.url == "https://vicflora.example/flora/taxon/abc"


def test_taxon_requires_identifier() -> None:
    with pytest.raises(ValueError):
        Taxon.from_entity({"name": "Anonymous"})


def test_character_kind_and_question_flag() -> None:
    grouping = Character(id=1, name="Habit", kind=0)
    numeric = Character(id=2.0, name=" Leaf length ", kind=CharacterKind.NUMERIC, parent=1)

    assert grouping.kind is CharacterKind.GROUPING
    assert grouping.is_question is False
    assert numeric.id == "2"
    assert numeric.name == "Leaf length"
    assert numeric.parent == "1"
    assert numeric.is_question is True
    assert numeric.kind.label == "numeric"


def test_entities_are_frozen() -> None:
    state = State(id=5, character_id=1, name="", position=0)

    assert state.label == "State 5"
    with pytest.raises(ValidationError):
        state.position = 3  # type: ignore[misc]


def test_state_rejects_negative_position() -> None:
    with pytest.raises(ValidationError):
        State(id=5, character_id=1, name="x", position=-1)


def test_item_and_lead_records() -> None:
    item = Item.from_record({"item_id": 9, "item_name": "Acacia", "url": " ", "to_key": 1906})
    lead = Lead.from_record({"lead_id": "a", "parent_id": 3, "lead_text": " Leaves bipinnate ", "item": 9})

    assert item.item_id == "9"
    assert item.url is None
    assert item.to_key == "1906"
    assert item.links_to_key is True
    assert lead.parent_id == "3"
    assert lead.text == "Leaves bipinnate"
    assert lead.item == "9"


def test_lead_requires_parent() -> None:
    with pytest.raises(ValidationError):
        Lead.from_record({"lead_id": "a", "lead_text": "orphan"})
