"""Candidate narrowing for multi-access identification sessions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Set, Tuple

from keying.config.policies import MultiAccessPolicy
from keying.entities.core import Character, CharacterKind, State
from keying.utils.helpers import coerce_identifier
from keying.utils.logging import get_logger

from .dataset import MultiAccessDataset

_LOGGER = get_logger(module=__name__)


@dataclass(frozen=True, slots=True)
class Selection:
    """One recorded constraint: a discrete state or an observed numeric value."""

    character_id: str
    state_id: str | None = None
    value: float | None = None

    @property
    def is_numeric(self) -> bool:
        return self.value is not None


@dataclass(frozen=True, slots=True)
class SelectionOutcome:
    """Effect of applying one constraint.

    ``applied`` is ``False`` when the character or state was unknown; such calls
    are no-ops that eliminate nothing.
    """

    eliminated: int
    remaining: int
    applied: bool = True


@dataclass(frozen=True, slots=True)
class UndoResult:
    character_id: str
    selection: Selection


@dataclass(frozen=True, slots=True)
class RemainingTaxon:
    id: str
    name: str
    url: str | None = None


@dataclass(slots=True)
class RemainingTaxa:
    total: int
    sample: List[RemainingTaxon] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SelectionDetail:
    """Display record for one entry of the selection history."""

    character_id: str
    character_name: str
    state_id: str | None
    state_name: str | None
    value: float | None

    @property
    def label(self) -> str:
        if self.value is not None:
            return f"{self.value:g}"
        return self.state_name or f"State {self.state_id}"


class SessionStatus(str, Enum):
    NARROWING = "narrowing"
    IDENTIFIED = "identified"
    NO_MATCH = "no-match"


class CandidateEngine:
    """Live candidate set and selection history for one multi-access session.

    The dataset is shared and read-only; everything mutable belongs to this
    session object. Undo never applies inverse steps: the candidate set is
    rebuilt by replaying the remaining history against the full scored taxon
    set, in insertion order.
    """

    def __init__(
        self,
        dataset: MultiAccessDataset,
        policy: MultiAccessPolicy | None = None,
    ) -> None:
        self._dataset = dataset
        self._policy = policy or MultiAccessPolicy()
        self._wildcards: FrozenSet[int] = frozenset(self._policy.wildcard_codes)
        self._history: Dict[str, Selection] = {}
        self._candidates: Set[str] = set()
        self._eliminated: Set[str] = set()
        self._universe: Tuple[str, ...] = tuple(dataset.scored_taxa())
        self.reset()

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    @property
    def dataset(self) -> MultiAccessDataset:
        return self._dataset

    @property
    def policy(self) -> MultiAccessPolicy:
        return self._policy

    @property
    def candidates(self) -> FrozenSet[str]:
        return frozenset(self._candidates)

    @property
    def eliminated(self) -> FrozenSet[str]:
        return frozenset(self._eliminated)

    @property
    def total_taxa(self) -> int:
        return len(self._universe)

    @property
    def history(self) -> Tuple[Selection, ...]:
        return tuple(self._history.values())

    def __len__(self) -> int:
        return len(self._candidates)

    def status(self) -> SessionStatus:
        if not self._candidates:
            return SessionStatus.NO_MATCH
        if len(self._candidates) == 1:
            return SessionStatus.IDENTIFIED
        return SessionStatus.NARROWING

    def progress(self) -> float:
        """Fraction of the scored taxa eliminated so far."""

        if not self._universe:
            return 0.0
        return len(self._eliminated) / len(self._universe)

    def states_for(self, character_id: Any) -> Tuple[State, ...]:
        return self._dataset.states_for(character_id)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._candidates = set(self._universe)
        self._eliminated = set()
        self._history = {}

    # ------------------------------------------------------------------
    # Question selection
    # ------------------------------------------------------------------
    def is_character_relevant(self, character_id: Any) -> bool:
        """Whether the remaining candidates show more than one code for the character."""

        if self._dataset.column_of(character_id) is None:
            return False
        seen: Set[int] = set()
        for taxon_id in self._candidates:
            code = self._dataset.score_for(taxon_id, character_id)
            if code is None:
                continue
            seen.add(code)
            if len(seen) > 1:
                return True
        return False

    def relevant_characters(self) -> List[Character]:
        """Characters that can still split the candidates.

        Discrete characters come before numeric ones; each group is ordered by
        display name.
        """

        relevant = [
            character
            for character in self._dataset.characters
            if character.is_question
            and character.id not in self._history
            and self.is_character_relevant(character.id)
        ]
        return sorted(
            relevant,
            key=lambda character: (character.kind is not CharacterKind.DISCRETE, character.name),
        )

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------
    def choose_state(self, character_id: Any, state_id: Any) -> SelectionOutcome:
        """Keep candidates whose code equals the state's position or is a wildcard."""

        character = self._dataset.character(character_id)
        position = self._dataset.state_position(character_id, state_id)
        if character is None or position is None:
            _LOGGER.debug(
                "Ignoring unknown state selection",
                character_id=character_id,
                state_id=state_id,
            )
            return SelectionOutcome(eliminated=0, remaining=len(self._candidates), applied=False)

        selection = Selection(character_id=character.id, state_id=coerce_identifier(state_id))
        if character.id in self._history:
            return self._reselect(selection)
        outcome = self._narrow(
            character.id,
            lambda taxon_id: self._matches_state(taxon_id, character.id, position),
        )
        self._history[character.id] = selection
        return outcome

    def choose_numeric(self, character_id: Any, value: float) -> SelectionOutcome:
        """Keep candidates whose recorded range contains ``value``."""

        character = self._dataset.character(character_id)
        try:
            observed = float(value)
        except (TypeError, ValueError):
            observed = math.nan
        if character is None or math.isnan(observed):
            _LOGGER.debug(
                "Ignoring unusable numeric selection",
                character_id=character_id,
                value=value,
            )
            return SelectionOutcome(eliminated=0, remaining=len(self._candidates), applied=False)

        selection = Selection(character_id=character.id, value=observed)
        if character.id in self._history:
            return self._reselect(selection)
        outcome = self._narrow(
            character.id,
            lambda taxon_id: self._matches_value(taxon_id, character.id, observed),
        )
        self._history[character.id] = selection
        return outcome

    def _reselect(self, selection: Selection) -> SelectionOutcome:
        # Candidates must equal the history applied to the full taxon set.
        before = set(self._candidates)
        self._history[selection.character_id] = selection
        self._replay(self._history.values())
        dropped = before - self._candidates
        _LOGGER.debug(
            "Replaced selection",
            character_id=selection.character_id,
            eliminated=len(dropped),
            remaining=len(self._candidates),
        )
        return SelectionOutcome(eliminated=len(dropped), remaining=len(self._candidates))

    def _narrow(self, character_id: str, predicate) -> SelectionOutcome:
        kept: Set[str] = set()
        dropped: Set[str] = set()
        for taxon_id in self._candidates:
            if predicate(taxon_id):
                kept.add(taxon_id)
            else:
                dropped.add(taxon_id)
        self._candidates = kept
        self._eliminated.update(dropped)
        _LOGGER.debug(
            "Applied selection",
            character_id=character_id,
            eliminated=len(dropped),
            remaining=len(kept),
        )
        return SelectionOutcome(eliminated=len(dropped), remaining=len(kept))

    def _matches_state(self, taxon_id: str, character_id: str, position: int) -> bool:
        code = self._dataset.score_for(taxon_id, character_id)
        if code is None:
            return False
        return code == position or code in self._wildcards

    def _matches_value(self, taxon_id: str, character_id: str, value: float) -> bool:
        entry = self._dataset.measurement_for(character_id, taxon_id)
        if not entry or len(entry) < 2:
            return False
        bounds = [bound for bound in entry[1:] if not math.isnan(bound)]
        if not bounds:
            return False
        return min(bounds) <= value <= max(bounds)

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------
    def undo_last(self) -> UndoResult | None:
        """Drop the most recently inserted selection and rebuild the candidates."""

        if not self._history:
            return None
        character_id = next(reversed(self._history))
        selection = self._history.pop(character_id)
        self._replay(self._history.values())
        return UndoResult(character_id=character_id, selection=selection)

    def undo_selection(self, character_id: Any) -> UndoResult | None:
        """Drop the selection recorded for ``character_id`` and rebuild the candidates."""

        key = coerce_identifier(character_id)
        if key not in self._history:
            return None
        selection = self._history.pop(key)
        self._replay(self._history.values())
        return UndoResult(character_id=key, selection=selection)

    def replay(self, selections: Iterable[Selection]) -> None:
        """Reset and apply ``selections`` in order."""

        self._replay(selections)

    def _replay(self, selections: Iterable[Selection]) -> None:
        snapshot = list(selections)
        self.reset()
        for selection in snapshot:
            if selection.is_numeric:
                self.choose_numeric(selection.character_id, selection.value)
            else:
                self.choose_state(selection.character_id, selection.state_id)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def remaining_taxa(self, limit: int | None = None) -> RemainingTaxa:
        resolved_limit = self._policy.remaining_sample_limit if limit is None else max(limit, 0)
        listing = sorted(
            (
                RemainingTaxon(
                    id=taxon_id,
                    name=self._dataset.taxon_name(taxon_id),
                    url=self._dataset.taxon_url(taxon_id),
                )
                for taxon_id in self._candidates
            ),
            key=lambda taxon: (taxon.name.casefold(), taxon.name, taxon.id),
        )
        return RemainingTaxa(total=len(listing), sample=listing[:resolved_limit])

    def selections(self) -> List[SelectionDetail]:
        details: List[SelectionDetail] = []
        for character_id, selection in self._history.items():
            state = (
                self._dataset.state(character_id, selection.state_id)
                if selection.state_id is not None
                else None
            )
            details.append(
                SelectionDetail(
                    character_id=character_id,
                    character_name=self._dataset.display_name(character_id),
                    state_id=selection.state_id,
                    state_name=state.label if state is not None else None,
                    value=selection.value,
                )
            )
        return details


__all__ = [
    "CandidateEngine",
    "Selection",
    "SelectionOutcome",
    "UndoResult",
    "RemainingTaxon",
    "RemainingTaxa",
    "SelectionDetail",
    "SessionStatus",
]
