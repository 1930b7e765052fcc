"""Multi-access keys: matrix decoding, dataset indexing and candidate narrowing."""

from .codec import (
    decode_measure_string,
    decode_measures,
    decode_score_string,
    decode_scores,
    decompress,
    parse_lucid_bundle,
)
from .dataset import KeySummary, MultiAccessDataset
from .engine import (
    CandidateEngine,
    RemainingTaxa,
    RemainingTaxon,
    Selection,
    SelectionDetail,
    SelectionOutcome,
    SessionStatus,
    UndoResult,
)

__all__ = [
    "decompress",
    "decode_score_string",
    "decode_measure_string",
    "decode_scores",
    "decode_measures",
    "parse_lucid_bundle",
    "KeySummary",
    "MultiAccessDataset",
    "CandidateEngine",
    "RemainingTaxa",
    "RemainingTaxon",
    "Selection",
    "SelectionDetail",
    "SelectionOutcome",
    "SessionStatus",
    "UndoResult",
]
