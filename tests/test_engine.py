from __future__ import annotations

import itertools

import pytest

from keying.config.policies import MultiAccessPolicy
from keying.matrix import CandidateEngine, MultiAccessDataset, Selection, SessionStatus


@pytest.fixture()
def engine(dataset: MultiAccessDataset) -> CandidateEngine:
    return CandidateEngine(dataset)


def _three_taxon_dataset() -> MultiAccessDataset:
    return MultiAccessDataset.from_payload(
        {
            "features": [{"id": "C", "name": "Colour", "type": 1}],
            "states": [
                {"id": "s0", "feature": "C", "name": "green"},
                {"id": "s1", "feature": "C", "name": "blue"},
            ],
            "entities": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}, {"id": "c", "name": "C"}],
            "decompressedScores": {"a": [0], "b": [1], "c": [2]},
        }
    )


def test_reset_starts_from_scored_taxa(engine: CandidateEngine) -> None:
    assert engine.candidates == {"1", "2", "3", "4"}
    assert engine.total_taxa == 4
    assert engine.eliminated == frozenset()
    assert engine.status() is SessionStatus.NARROWING


def test_choose_state_keeps_matching_and_wildcard_codes() -> None:
    engine = CandidateEngine(_three_taxon_dataset())

    outcome = engine.choose_state("C", "s0")

    assert (outcome.eliminated, outcome.remaining) == (1, 2)
    assert engine.candidates == {"a", "c"}
    assert engine.eliminated == {"b"}


def test_wildcard_codes_survive_every_state(dataset: MultiAccessDataset) -> None:
    for state in dataset.states_for(101):
        engine = CandidateEngine(dataset)
        engine.choose_state(101, state.id)
        assert "3" in engine.candidates
    for state in dataset.states_for(102):
        engine = CandidateEngine(dataset)
        engine.choose_state(102, state.id)
        assert "4" in engine.candidates


def test_wildcard_codes_follow_policy(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset, MultiAccessPolicy(wildcard_codes=[4]))

    engine.choose_state(101, 201)

    assert engine.candidates == {"1"}


def test_choose_numeric_uses_recorded_range(dataset: MultiAccessDataset) -> None:
    inside = CandidateEngine(dataset)
    outcome = inside.choose_numeric(103, 7)
    assert inside.candidates == {"1"}
    assert (outcome.eliminated, outcome.remaining) == (3, 1)
    assert inside.status() is SessionStatus.IDENTIFIED

    outside = CandidateEngine(dataset)
    outside.choose_numeric(103, 12)
    assert outside.candidates == {"2", "4"}


def test_numeric_range_boundaries_are_inclusive(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset)
    engine.choose_numeric(103, 10)
    assert engine.candidates == {"1", "4"}


def test_unknown_references_are_zero_effect_no_ops(engine: CandidateEngine) -> None:
    for outcome in (
        engine.choose_state(101, 999),
        engine.choose_state("nope", 201),
        engine.choose_numeric("nope", 3),
        engine.choose_numeric(103, "not a number"),
    ):
        assert outcome.applied is False
        assert outcome.eliminated == 0
        assert outcome.remaining == 4
    assert engine.history == ()


def test_relevant_characters_order_and_soundness(engine: CandidateEngine) -> None:
    relevant = engine.relevant_characters()
    assert [character.id for character in relevant] == ["101", "102", "103"]

    engine.choose_state(102, 212)
    relevant = engine.relevant_characters()
    assert "102" not in [character.id for character in relevant]
    for character in relevant:
        codes = {engine.dataset.score_for(taxon, character.id) for taxon in engine.candidates}
        assert len(codes - {None}) >= 2


def test_relevance_vanishes_when_candidates_agree(engine: CandidateEngine) -> None:
    engine.choose_state(101, 201)
    assert engine.candidates == {"1", "3"}
    assert engine.relevant_characters() == []
    assert engine.is_character_relevant(102) is False


def test_narrowing_is_monotonic(dataset: MultiAccessDataset) -> None:
    steps = [("state", 101, 202), ("state", 102, 211), ("numeric", 103, 9.0)]
    for order in itertools.permutations(steps):
        engine = CandidateEngine(dataset)
        previous = len(engine)
        for kind, character_id, value in order:
            if kind == "state":
                engine.choose_state(character_id, value)
            else:
                engine.choose_numeric(character_id, value)
            assert len(engine) <= previous
            previous = len(engine)


def test_undo_matches_direct_replay(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset)
    engine.choose_state(101, 202)
    engine.choose_state(102, 212)
    engine.choose_numeric(103, 13)

    undone = engine.undo_last()

    assert undone is not None
    assert undone.character_id == "103"
    assert undone.selection == Selection(character_id="103", value=13.0)

    direct = CandidateEngine(dataset)
    direct.choose_state(101, 202)
    direct.choose_state(102, 212)
    assert engine.candidates == direct.candidates
    assert engine.eliminated == direct.eliminated


def test_undo_on_empty_history_changes_nothing(engine: CandidateEngine) -> None:
    before = engine.candidates
    assert engine.undo_last() is None
    assert engine.candidates == before


def test_reselecting_keeps_first_history_position(engine: CandidateEngine) -> None:
    engine.choose_state(101, 202)
    engine.choose_state(102, 211)
    engine.choose_state(101, 201)

    assert [selection.character_id for selection in engine.history] == ["101", "102"]
    assert engine.history[0].state_id == "201"
    assert engine.undo_last().character_id == "102"


def test_reselecting_matches_replayed_history(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset)
    engine.choose_state(101, 202)
    engine.choose_numeric(103, 13)

    outcome = engine.choose_state(101, 201)

    replayed = CandidateEngine(dataset)
    replayed.replay(engine.history)
    assert engine.candidates == replayed.candidates
    assert engine.eliminated == replayed.eliminated
    assert outcome.remaining == len(replayed)

    engine.choose_numeric(103, 7)
    replayed.reset()
    replayed.replay(engine.history)
    assert engine.candidates == replayed.candidates
    assert [selection.character_id for selection in engine.history] == ["101", "103"]


def test_undo_selection_removes_one_character(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset)
    engine.choose_state(101, 202)
    engine.choose_state(102, 212)

    assert engine.undo_selection(101).character_id == "101"
    assert engine.undo_selection(101) is None

    direct = CandidateEngine(dataset)
    direct.choose_state(102, 212)
    assert engine.candidates == direct.candidates


def test_empty_candidate_set_is_reported_not_raised(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset)
    engine.choose_state(101, 203)
    engine.choose_numeric(103, 100)

    assert len(engine) == 0
    assert engine.status() is SessionStatus.NO_MATCH
    assert engine.progress() == 1.0
    assert engine.remaining_taxa().total == 0


def test_remaining_taxa_sorted_case_insensitively(engine: CandidateEngine) -> None:
    remaining = engine.remaining_taxa()
    assert remaining.total == 4
    assert [taxon.name for taxon in remaining.sample] == [
        "Acacia alpha",
        "banksia beta",
        "Correa gamma",
        "Dodonaea delta",
    ]
    assert remaining.sample[2].url == "https://example.org/correa"

    limited = engine.remaining_taxa(limit=2)
    assert limited.total == 4
    assert len(limited.sample) == 2


def test_remaining_taxa_default_limit_comes_from_policy(dataset: MultiAccessDataset) -> None:
    engine = CandidateEngine(dataset, MultiAccessPolicy(remaining_sample_limit=1))
    assert len(engine.remaining_taxa().sample) == 1


def test_selections_preserve_insertion_order(engine: CandidateEngine) -> None:
    engine.choose_numeric(103, 9)
    engine.choose_state(101, 202)

    details = engine.selections()

    assert [detail.character_name for detail in details] == ["Leaf (length)", "Flower colour"]
    assert details[0].label == "9"
    assert details[1].label == "yellow"


def test_progress_tracks_eliminations(engine: CandidateEngine) -> None:
    engine.choose_state(101, 201)
    assert engine.progress() == pytest.approx(0.5)
    engine.reset()
    assert engine.progress() == 0.0
    assert engine.history == ()


def test_reset_restores_full_candidate_set(engine: CandidateEngine) -> None:
    before = engine.candidates
    engine.choose_state(101, 203)
    engine.reset()
    assert engine.candidates == before
    assert engine.eliminated == frozenset()
