"""Validated, immutable representation of one multi-access key."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple

from pydantic import ValidationError

from keying.entities.core import Character, CharacterKind, State, Taxon
from keying.entities.errors import SchemaViolation
from keying.observability.issues import IssueKind, IssueLog, record_issue
from keying.utils.helpers import clean_text, coerce_identifier
from keying.utils.logging import get_logger

from .codec import decode_measures, decode_scores

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class KeySummary:
    """Structural overview of a multi-access key."""

    key_id: str | None
    title: str
    total_taxa: int
    total_characters: int
    total_states: int
    scored_taxa: int
    measured_characters: int
    character_kinds: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_id": self.key_id,
            "title": self.title,
            "total_taxa": self.total_taxa,
            "total_characters": self.total_characters,
            "total_states": self.total_states,
            "scored_taxa": self.scored_taxa,
            "measured_characters": self.measured_characters,
            "character_kinds": dict(self.character_kinds),
        }


def _as_list(payload: Mapping[str, Any], field_name: str, *, required: bool) -> List[Any]:
    value = payload.get(field_name)
    if value is None:
        if required:
            raise SchemaViolation(f"multi-access key is missing '{field_name}'")
        return []
    if not isinstance(value, list):
        raise SchemaViolation(f"multi-access key field '{field_name}' must be a list")
    return value


def _freeze_row(row: Any) -> Tuple[int, ...] | None:
    if row is None:
        return None
    return tuple(int(code) for code in row)


def _freeze_measure(entry: Any) -> Tuple[float, ...] | None:
    if entry is None:
        return None
    return tuple(float(value) for value in entry)


class MultiAccessDataset:
    """Characters, states, taxa and matrices of one multi-access key.

    Built once from the exported key payload and read-only afterwards, so one
    instance can back any number of concurrent sessions. Matrix columns follow
    the raw ``features`` declaration order; quarantined features keep their
    column but are never offered as questions.
    """

    def __init__(
        self,
        *,
        key_id: str | None,
        title: str,
        characters: Sequence[Character],
        columns: Mapping[str, int],
        states: Sequence[State],
        taxa: Sequence[Taxon],
        scores: Mapping[str, Tuple[int, ...] | None],
        measures: Mapping[str, Mapping[str, Tuple[float, ...] | None]],
    ) -> None:
        self._key_id = key_id
        self._title = title
        self._characters: Tuple[Character, ...] = tuple(characters)
        self._characters_by_id: Dict[str, Character] = {c.id: c for c in self._characters}
        self._columns: Dict[str, int] = dict(columns)

        grouped: Dict[str, List[State]] = defaultdict(list)
        for state in states:
            grouped[state.character_id].append(state)
        self._states: Dict[str, Tuple[State, ...]] = {
            character_id: tuple(sorted(items, key=lambda s: s.position))
            for character_id, items in grouped.items()
        }
        self._positions: Dict[Tuple[str, str], int] = {}
        for character_id, items in self._states.items():
            for state in items:
                self._positions.setdefault((character_id, state.id), state.position)

        self._taxa: Tuple[Taxon, ...] = tuple(taxa)
        self._taxa_by_id: Dict[str, Taxon] = {taxon.id: taxon for taxon in self._taxa}
        self._scores = MappingProxyType(dict(scores))
        self._measures = MappingProxyType(
            {character_id: MappingProxyType(dict(column)) for character_id, column in measures.items()}
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        key_id: str | None = None,
        issues: IssueLog | None = None,
    ) -> "MultiAccessDataset":
        """Validate an exported key and build the indexed dataset.

        ``decompressedScores``/``decompressedMeasures`` are used when present;
        otherwise the compressed ``scores``/``measures`` tables are decoded.

        Raises:
            SchemaViolation: when the payload lacks the structure required to
                build any dataset at all.
        """

        if not isinstance(payload, Mapping):
            raise SchemaViolation("multi-access key payload must be a mapping", source=key_id)

        metadata = payload.get("metadata") if isinstance(payload.get("metadata"), Mapping) else {}
        resolved_key_id = key_id or coerce_identifier(metadata.get("id")) or coerce_identifier(payload.get("id"))
        source = resolved_key_id
        title = clean_text(payload.get("title")) or (resolved_key_id or "Untitled key")

        raw_features = _as_list(payload, "features", required=True)
        raw_states = _as_list(payload, "states", required=False)
        raw_entities = _as_list(payload, "entities", required=False)

        characters: List[Character] = []
        columns: Dict[str, int] = {}
        for column, raw in enumerate(raw_features):
            character = cls._build_character(raw, column, issues=issues, source=source)
            if character is None:
                continue
            if character.id in columns:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="duplicate feature id",
                    source=source,
                    item_id=character.id,
                )
                continue
            columns[character.id] = column
            characters.append(character)

        states: List[State] = []
        next_position: Counter[str] = Counter()
        for raw in raw_states:
            if not isinstance(raw, Mapping):
                record_issue(issues, IssueKind.SCHEMA_VIOLATION, reason="state is not an object", source=source)
                continue
            character_id = coerce_identifier(raw.get("feature"))
            if character_id is None or character_id not in columns:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="state references an unknown feature",
                    source=source,
                    item_id=coerce_identifier(raw.get("id")),
                    payload={"feature": raw.get("feature")},
                )
                continue
            try:
                state = State(
                    id=raw.get("id"),
                    character_id=character_id,
                    name=raw.get("name"),
                    position=next_position[character_id],
                )
            except ValidationError as exc:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="invalid state record",
                    source=source,
                    payload={"error": str(exc)},
                )
                continue
            next_position[character_id] += 1
            states.append(state)

        taxa: List[Taxon] = []
        for raw in raw_entities:
            try:
                taxa.append(Taxon.from_entity(raw))
            except (ValidationError, ValueError, AttributeError) as exc:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="invalid entity record",
                    source=source,
                    payload={"error": str(exc)},
                )

        scores = cls._resolve_scores(payload, issues=issues, source=source)
        measures = cls._resolve_measures(payload, issues=issues, source=source)

        dataset = cls(
            key_id=resolved_key_id,
            title=title,
            characters=characters,
            columns=columns,
            states=states,
            taxa=taxa,
            scores=scores,
            measures=measures,
        )
        _LOGGER.info(
            "Loaded multi-access key",
            key_id=resolved_key_id,
            title=title,
            characters=len(characters),
            taxa=len(taxa),
            scored=len(dataset.scored_taxa()),
        )
        return dataset

    @staticmethod
    def _build_character(
        raw: Any, column: int, *, issues: IssueLog | None, source: str | None
    ) -> Character | None:
        if not isinstance(raw, Mapping):
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason="feature is not an object",
                source=source,
                payload={"column": column},
            )
            return None
        try:
            kind = CharacterKind(int(raw.get("type")))
        except (TypeError, ValueError):
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason="feature has an unknown type",
                source=source,
                item_id=coerce_identifier(raw.get("id")),
                payload={"column": column, "type": raw.get("type")},
            )
            return None
        try:
            return Character(id=raw.get("id"), name=raw.get("name"), kind=kind, parent=raw.get("parent"))
        except ValidationError as exc:
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason="invalid feature record",
                source=source,
                payload={"column": column, "error": str(exc)},
            )
            return None

    @staticmethod
    def _resolve_scores(
        payload: Mapping[str, Any], *, issues: IssueLog | None, source: str | None
    ) -> Dict[str, Tuple[int, ...] | None]:
        decoded = payload.get("decompressedScores")
        if decoded is None:
            compressed = payload.get("scores") or {}
            if not isinstance(compressed, Mapping):
                raise SchemaViolation("'scores' must map taxon ids to payloads", source=source)
            decoded = decode_scores(compressed, issues=issues, source=source)
        if not isinstance(decoded, Mapping):
            raise SchemaViolation("'decompressedScores' must map taxon ids to code rows", source=source)

        rows: Dict[str, Tuple[int, ...] | None] = {}
        for raw_taxon_id, row in decoded.items():
            taxon_id = coerce_identifier(raw_taxon_id) or str(raw_taxon_id)
            try:
                rows[taxon_id] = _freeze_row(row)
            except (TypeError, ValueError):
                rows[taxon_id] = None
                record_issue(
                    issues,
                    IssueKind.DECODE_FAILURE,
                    reason="score row is not a sequence of integers",
                    source=source,
                    item_id=taxon_id,
                )
        return rows

    @staticmethod
    def _resolve_measures(
        payload: Mapping[str, Any], *, issues: IssueLog | None, source: str | None
    ) -> Dict[str, Dict[str, Tuple[float, ...] | None]]:
        decoded = payload.get("decompressedMeasures")
        if decoded is None:
            compressed = payload.get("measures") or {}
            if not isinstance(compressed, Mapping):
                raise SchemaViolation("'measures' must map character ids to payloads", source=source)
            decoded = decode_measures(compressed, issues=issues, source=source)
        if not isinstance(decoded, Mapping):
            raise SchemaViolation("'decompressedMeasures' must be a mapping", source=source)

        table: Dict[str, Dict[str, Tuple[float, ...] | None]] = {}
        for raw_character_id, column in decoded.items():
            character_id = coerce_identifier(raw_character_id) or str(raw_character_id)
            entries: Dict[str, Tuple[float, ...] | None] = {}
            for raw_taxon_id, entry in (column or {}).items():
                taxon_id = coerce_identifier(raw_taxon_id) or str(raw_taxon_id)
                try:
                    entries[taxon_id] = _freeze_measure(entry)
                except (TypeError, ValueError):
                    entries[taxon_id] = None
                    record_issue(
                        issues,
                        IssueKind.DECODE_FAILURE,
                        reason="measurement is not a sequence of numbers",
                        source=source,
                        item_id=f"{character_id}/{taxon_id}",
                    )
            table[character_id] = entries
        return table

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def key_id(self) -> str | None:
        return self._key_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def characters(self) -> Tuple[Character, ...]:
        return self._characters

    @property
    def taxa(self) -> Tuple[Taxon, ...]:
        return self._taxa

    def __contains__(self, character_id: object) -> bool:
        return coerce_identifier(character_id) in self._characters_by_id

    def __iter__(self) -> Iterator[Character]:
        return iter(self._characters)

    def character(self, character_id: Any) -> Character | None:
        return self._characters_by_id.get(coerce_identifier(character_id))

    def column_of(self, character_id: Any) -> int | None:
        return self._columns.get(coerce_identifier(character_id))

    def states_for(self, character_id: Any) -> Tuple[State, ...]:
        return self._states.get(coerce_identifier(character_id), ())

    def state(self, character_id: Any, state_id: Any) -> State | None:
        position = self.state_position(character_id, state_id)
        if position is None:
            return None
        return self._states[coerce_identifier(character_id)][position]

    def state_position(self, character_id: Any, state_id: Any) -> int | None:
        return self._positions.get((coerce_identifier(character_id), coerce_identifier(state_id)))

    def taxon(self, taxon_id: Any) -> Taxon | None:
        return self._taxa_by_id.get(coerce_identifier(taxon_id))

    def taxon_name(self, taxon_id: Any) -> str:
        taxon = self.taxon(taxon_id)
        return taxon.name if taxon is not None else f"Taxon {taxon_id}"

    def taxon_url(self, taxon_id: Any) -> str | None:
        taxon = self.taxon(taxon_id)
        return taxon.url if taxon is not None else None

    def scored_taxa(self) -> List[str]:
        """Taxa holding a usable score row, in score-table order."""

        return [taxon_id for taxon_id, row in self._scores.items() if row is not None]

    def score_row(self, taxon_id: Any) -> Tuple[int, ...] | None:
        return self._scores.get(coerce_identifier(taxon_id))

    def score_for(self, taxon_id: Any, character_id: Any) -> int | None:
        """Return the matrix code, or ``None`` when the cell is absent."""

        row = self.score_row(taxon_id)
        column = self.column_of(character_id)
        if row is None or column is None or column >= len(row):
            return None
        return row[column]

    def measurement_for(self, character_id: Any, taxon_id: Any) -> Tuple[float, ...] | None:
        column = self._measures.get(coerce_identifier(character_id))
        if column is None:
            return None
        return column.get(coerce_identifier(taxon_id))

    def display_name(self, character_id: Any) -> str:
        """Human-readable character name, folding numeric sub-characters into their trait."""

        character = self.character(character_id)
        if character is None:
            return f"Character {character_id}"

        name = character.name
        parent = self.character(character.parent) if character.parent else None
        parent_name = parent.name if parent is not None else ""

        if parent_name and (character.kind is CharacterKind.NUMERIC or not name):
            if not name:
                return parent_name
            if name.lower() == parent_name.lower() or name.lower() in parent_name.lower():
                return parent_name
            return f"{parent_name} ({name})"
        if name:
            return name
        return f"Character {character.id}"

    def summary(self) -> KeySummary:
        kinds: Counter[str] = Counter(character.kind.label for character in self._characters)
        return KeySummary(
            key_id=self._key_id,
            title=self._title,
            total_taxa=len(self._taxa),
            total_characters=len(self._characters),
            total_states=sum(len(states) for states in self._states.values()),
            scored_taxa=len(self.scored_taxa()),
            measured_characters=len(self._measures),
            character_kinds=dict(sorted(kinds.items())),
        )


__all__ = ["MultiAccessDataset", "KeySummary"]
