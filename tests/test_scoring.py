"""Tests for vote tallying and settlement rules."""

from __future__ import annotations

import pytest

from data.models import VoteChoice, VoteRecord
from evaluation.scoring import (
    ScoreDelta,
    VoteTally,
    compute_deltas,
    decide_outcome,
    format_delta,
    settlement_summary,
    tally_votes,
)


def _votes(*choices: str) -> list[VoteRecord]:
    return [
        VoteRecord(
            id=f"v{i}",
            round_id="r",
            agent_id=f"a{i}",
            agent_name=f"agent{i}",
            choice=c,
            rationale="because",
            created_at=i,
        )
        for i, c in enumerate(choices)
    ]


class TestOutcome:
    def test_tie_goes_to_yes(self):
        assert decide_outcome(2, 2) == VoteChoice.YES

    def test_no_votes_is_yes(self):
        assert decide_outcome(0, 0) == VoteChoice.YES

    def test_no_majority(self):
        assert decide_outcome(1, 2) == VoteChoice.NO

    def test_tally(self):
        tally = tally_votes(_votes("YES", "NO", "NO"))
        assert tally == VoteTally(yes=1, no=2)
        assert tally.total == 3
        assert tally.outcome == VoteChoice.NO
        assert tally.to_dict() == {"YES": 1, "NO": 2}


class TestDeltas:
    def test_matching_and_mismatching(self):
        deltas = compute_deltas(_votes("YES", "NO"), VoteChoice.YES)
        assert [d.delta for d in deltas] == [3, -1]
        assert deltas[0].agent_name == "agent0"

    @pytest.mark.parametrize(
        "choices",
        [("YES", "YES", "NO"), ("NO", "NO", "NO", "YES"), ("YES", "NO", "YES", "NO")],
    )
    def test_sum_is_conserved(self, choices):
        votes = _votes(*choices)
        tally = tally_votes(votes)
        deltas = compute_deltas(votes, tally.outcome)
        matched = sum(1 for v in votes if v.choice == tally.outcome)
        assert sum(d.delta for d in deltas) == 3 * matched - (len(votes) - matched)
        assert all(d.delta in (3, -1) for d in deltas)

    def test_custom_rewards(self):
        deltas = compute_deltas(_votes("NO"), VoteChoice.YES, correct=5, wrong=-2)
        assert deltas[0].delta == -2

    def test_name_falls_back_to_id(self):
        vote = VoteRecord(
            id="v", round_id="r", agent_id="a-1", choice="NO", rationale="x", created_at=0
        )
        assert compute_deltas([vote], VoteChoice.NO)[0].agent_name == "a-1"


class TestSummary:
    def test_format_delta(self):
        assert format_delta(3) == "+3"
        assert format_delta(-1) == "-1"

    def test_summary_with_votes(self):
        votes = _votes("YES", "NO")
        tally = tally_votes(votes)
        summary = settlement_summary(tally, compute_deltas(votes, tally.outcome))
        assert summary == (
            "Round closed: outcome YES (1 YES / 1 NO). Scores: agent0: +3, agent1: -1"
        )

    def test_summary_without_votes(self):
        assert settlement_summary(VoteTally(), []) == "Round closed with no votes: outcome YES"

    def test_render(self):
        d = ScoreDelta(agent_id="a", agent_name="alice", choice=VoteChoice.YES, delta=3)
        assert d.render() == "alice: +3"
