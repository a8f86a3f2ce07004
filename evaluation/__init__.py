"""Evaluation – vote tallying, score settlement rules and input validators."""

from evaluation.scoring import (
    ScoreDelta,
    VoteTally,
    compute_deltas,
    decide_outcome,
    score_delta,
    settlement_summary,
    tally_votes,
)
from evaluation.validators import SubmissionValidator, ValidationResult

__all__ = [
    "ScoreDelta",
    "SubmissionValidator",
    "ValidationResult",
    "VoteTally",
    "compute_deltas",
    "decide_outcome",
    "score_delta",
    "settlement_summary",
    "tally_votes",
]
