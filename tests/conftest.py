"""Shared fixtures: a small multi-access matrix and a pair of linked dichotomous keys."""

from __future__ import annotations

import copy
import sys
from typing import Any, Dict, Iterator

import pytest
from loguru import logger

from keying.dichotomous import KeyLibrary
from keying.matrix import MultiAccessDataset

_MATRIX_PAYLOAD: Dict[str, Any] = {
    "title": "Shrubs of the test plot",
    "features": [
        {"id": 100, "name": "Plant", "type": 0},
        {"id": 101, "name": "Flower colour", "type": 1},
        {"id": 102, "name": "Leaf arrangement", "type": 1},
        {"id": 103, "name": "length", "type": 2, "parent": 104},
        {"id": 104, "name": "Leaf", "type": 0},
    ],
    "states": [
        {"id": 201, "feature": 101, "name": "white"},
        {"id": 202, "feature": 101, "name": "yellow"},
        {"id": 203, "feature": 101, "name": "red"},
        {"id": 211, "feature": 102, "name": "alternate"},
        {"id": 212, "feature": 102, "name": "opposite"},
    ],
    "entities": [
        {"id": 1, "name": "Acacia alpha"},
        {"id": 2, "name": "banksia beta"},
        {"id": 3, "name": "Correa gamma", "url": "https://example.org/correa"},
        {"id": 4, "name": "Dodonaea delta"},
        {"id": 5, "name": "Eremophila epsilon"},
    ],
    "decompressedScores": {
        "1": [0, 0, 0, 0, 0],
        "2": [0, 1, 1, 1, 0],
        "3": [0, 2, 0, 0, 0],
        "4": [0, 1, 4, 1, 0],
        "5": None,
    },
    "decompressedMeasures": {
        "103": {
            "1": [0, 5, 10],
            "2": [0, 12, 20],
            "3": [0],
            "4": [0, 8, 15],
        }
    },
}

_ROOT_KEY: Dict[str, Any] = {
    "key_id": 1903,
    "key_title": "Key to the families",
    "taxonomic_scope": {"item_name": "Plantae"},
    "first_step": {"root_node_id": "n0"},
    "leads": [
        {"lead_id": "L1", "parent_id": "n0", "lead_text": "Leaves simple"},
        {"lead_id": "L2", "parent_id": "n0", "lead_text": "Leaves compound", "item": "i3"},
        {"lead_id": "L3", "parent_id": "L1", "lead_text": "Flowers blue", "item": "i1"},
        {"lead_id": "L4", "parent_id": "L1", "lead_text": "Flowers red", "item": "i2"},
    ],
    "items": [
        {"item_id": "i1", "item_name": "Alpha caerulea", "url": "https://example.org/alpha"},
        {"item_id": "i2", "item_name": "Proteaceae", "to_key": 42},
        {"item_id": "i3", "item_name": "Fabaceae", "to_key": "404"},
    ],
}

_LINKED_KEY: Dict[str, Any] = {
    "key_id": "42",
    "key_title": "Key to Proteaceae",
    "first_step": {"root_node_id": "m0"},
    "leads": [
        {"lead_id": "M1", "parent_id": "m0", "lead_text": "Fruit dry", "item": "j1"},
        {"lead_id": "M2", "parent_id": "m0", "lead_text": "Fruit fleshy"},
    ],
    "items": [{"item_id": "j1", "item_name": "Banksia"}],
}


@pytest.fixture(autouse=True)
def _restore_loguru() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture()
def matrix_payload() -> Dict[str, Any]:
    return copy.deepcopy(_MATRIX_PAYLOAD)


@pytest.fixture()
def dataset(matrix_payload: Dict[str, Any]) -> MultiAccessDataset:
    return MultiAccessDataset.from_payload(matrix_payload, key_id="key-test-complete.json")


@pytest.fixture()
def root_key() -> Dict[str, Any]:
    return copy.deepcopy(_ROOT_KEY)


@pytest.fixture()
def linked_key() -> Dict[str, Any]:
    return copy.deepcopy(_LINKED_KEY)


@pytest.fixture()
def library(root_key: Dict[str, Any], linked_key: Dict[str, Any]) -> KeyLibrary:
    return KeyLibrary({"1903": root_key, "42": {"keybase": linked_key}})
