"""Decoding of compressed score matrices and measurement tables.

Lucid-style multi-access keys ship their matrices as LZ-String base64 payloads:

* one payload per taxon for scores. Every decompressed character is a code
  offset from ``"0"``, one per character in declaration order.
* one payload per (character, taxon) pair for measurements, decompressing to
  colon-delimited decimals where element 0 is a qualifier and the remaining
  values bound the observed range.

A payload that cannot be recovered is recorded as absent (``None``); the rest
of the table is still decoded.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Mapping

from lzstring import LZString

from keying.entities.errors import DecodeFailure, SchemaViolation
from keying.observability.issues import IssueKind, IssueLog, record_issue
from keying.utils.helpers import coerce_identifier
from keying.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)
_LZ = LZString()

_CODE_OFFSET = ord("0")
_MEASURE_SEPARATOR = ":"
_LEADING_DECIMAL = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LUCID_BUNDLE = re.compile(r"var\s+key\s*=\s*(\{.*\})\s*;?\s*$", re.DOTALL)

ScoreTable = Dict[str, List[int] | None]
MeasureTable = Dict[str, Dict[str, List[float] | None]]


def decompress(payload: str) -> str:
    """Decompress a single LZ-String base64 payload or raise :class:`DecodeFailure`."""

    if not isinstance(payload, str) or not payload:
        raise DecodeFailure("compressed payload must be a non-empty string")
    try:
        text = _LZ.decompressFromBase64(payload)
    except Exception as exc:  # lzstring raises assorted lookup errors on corrupt input
        raise DecodeFailure(f"payload could not be decompressed: {exc!r}") from exc
    if not text:
        raise DecodeFailure("payload decompressed to an empty value")
    return text


def parse_decimal(token: str) -> float:
    """Parse the leading decimal of ``token``; ``nan`` when there is none."""

    match = _LEADING_DECIMAL.match(token)
    if match is None:
        return math.nan
    return float(match.group(1))


def decode_score_string(payload: str) -> List[int]:
    """Decode one taxon's compressed score row into integer codes."""

    return [ord(symbol) - _CODE_OFFSET for symbol in decompress(payload)]


def decode_measure_string(payload: str) -> List[float]:
    """Decode one compressed measurement entry into decimals."""

    return [parse_decimal(token) for token in decompress(payload).split(_MEASURE_SEPARATOR)]


def decode_scores(
    compressed: Mapping[Any, str],
    *,
    issues: IssueLog | None = None,
    source: str | None = None,
) -> ScoreTable:
    """Decode every taxon's score row; failures become ``None`` entries."""

    decoded: ScoreTable = {}
    for raw_taxon_id, payload in compressed.items():
        taxon_id = coerce_identifier(raw_taxon_id) or str(raw_taxon_id)
        try:
            decoded[taxon_id] = decode_score_string(payload)
        except DecodeFailure as exc:
            decoded[taxon_id] = None
            record_issue(
                issues,
                IssueKind.DECODE_FAILURE,
                reason=f"scores: {exc}",
                source=source,
                item_id=taxon_id,
            )
    _LOGGER.debug("Decoded score rows", source=source, rows=len(decoded))
    return decoded


def decode_measures(
    compressed: Mapping[Any, Mapping[Any, str]],
    *,
    issues: IssueLog | None = None,
    source: str | None = None,
) -> MeasureTable:
    """Decode every (character, taxon) measurement; failures become ``None``."""

    decoded: MeasureTable = {}
    for raw_character_id, entries in compressed.items():
        character_id = coerce_identifier(raw_character_id) or str(raw_character_id)
        column: Dict[str, List[float] | None] = {}
        for raw_taxon_id, payload in (entries or {}).items():
            taxon_id = coerce_identifier(raw_taxon_id) or str(raw_taxon_id)
            try:
                column[taxon_id] = decode_measure_string(payload)
            except DecodeFailure as exc:
                column[taxon_id] = None
                record_issue(
                    issues,
                    IssueKind.DECODE_FAILURE,
                    reason=f"measures: {exc}",
                    source=source,
                    item_id=f"{character_id}/{taxon_id}",
                )
        decoded[character_id] = column
    return decoded


def parse_lucid_bundle(js_text: str) -> Dict[str, Any]:
    """Extract the key object from a ``var key = {...};`` JavaScript bundle."""

    match = _LUCID_BUNDLE.search(js_text)
    if match is None:
        raise SchemaViolation("could not parse Lucid bundle format")
    try:
        payload = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"failed to parse JSON from Lucid bundle: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaViolation("Lucid bundle must define an object")
    return payload


__all__ = [
    "decompress",
    "parse_decimal",
    "decode_score_string",
    "decode_measure_string",
    "decode_scores",
    "decode_measures",
    "parse_lucid_bundle",
]
