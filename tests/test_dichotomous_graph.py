from __future__ import annotations

from typing import Any, Dict

import pytest

from keying.dichotomous import DichotomousKey, KeyLibrary
from keying.entities.errors import SchemaViolation, UnknownKey
from keying.observability import IssueLog


def test_from_payload_indexes_leads_by_parent(root_key: Dict[str, Any]) -> None:
    key = DichotomousKey.from_payload(root_key)

    assert key.key_id == "1903"
    assert key.root == "n0"
    assert key.scope == "Plantae"
    assert [lead.lead_id for lead in key.options_for("L1")] == ["L3", "L4"]
    assert key.options_for("L3") == ()
    assert key.item("i2").to_key == "42"
    assert key.linked_keys() == ["404", "42"]
    assert (key.lead_count, key.item_count) == (4, 3)


def test_envelope_and_title_fallbacks(linked_key: Dict[str, Any]) -> None:
    linked_key.pop("key_title")
    linked_key.pop("key_id")

    key = DichotomousKey.from_payload({"keybase": linked_key}, key_id="42")

    assert key.key_id == "42"
    assert key.title == "Key 42"
    assert key.scope is None


def test_missing_root_or_identifier_is_fatal(root_key: Dict[str, Any]) -> None:
    no_id = dict(root_key)
    no_id.pop("key_id")
    with pytest.raises(SchemaViolation):
        DichotomousKey.from_payload(no_id)

    no_root = dict(root_key)
    no_root["first_step"] = {}
    with pytest.raises(SchemaViolation):
        DichotomousKey.from_payload(no_root)


def test_malformed_leads_are_quarantined(root_key: Dict[str, Any]) -> None:
    root_key["leads"].append({"parent_id": "n0", "lead_text": "No id"})
    root_key["leads"].append("not a lead")
    root_key["items"].append({"item_name": "No id"})
    issues = IssueLog()

    key = DichotomousKey.from_payload(root_key, issues=issues)

    assert len(key.options_for("n0")) == 2
    assert issues.counts() == {"schema-violation": 3}


def test_library_loads_on_demand_and_caches(library: KeyLibrary) -> None:
    assert "1903" in library and 42 in library
    assert library.key_ids() == ["1903", "42"]
    first = library.load("42")
    assert library.load(42) is first


def test_library_failures_only_affect_one_key(library: KeyLibrary) -> None:
    broken = KeyLibrary({"1": {"key_id": "1"}, "2": {"key_id": "2", "first_step": {"root_node_id": "r"}}})

    with pytest.raises(UnknownKey) as excinfo:
        library.load("missing")
    assert str(excinfo.value) == "Key missing not found in dataset"
    assert isinstance(excinfo.value, KeyError)

    with pytest.raises(SchemaViolation):
        broken.load("1")
    assert broken.load("2").root == "r"


def test_library_id_wins_over_payload_id(linked_key: Dict[str, Any]) -> None:
    issues = IssueLog()
    library = KeyLibrary({"42": {**linked_key, "key_id": "43"}}, issues=issues)

    key = library.load("42")

    assert key.key_id == "42"
    assert issues.counts() == {"schema-violation": 1}
    assert DichotomousKey.from_payload({**linked_key, "key_id": "43"}, key_id="42").key_id == "43"
