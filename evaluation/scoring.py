"""Vote tallying and score settlement rules.

Pure functions: nothing here touches the store, so the rules can be
tested on plain lists of votes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from data.models import VoteChoice, VoteRecord

CORRECT_VOTE_DELTA = 3
WRONG_VOTE_DELTA = -1


@dataclass(frozen=True)
class VoteTally:
    yes: int = 0
    no: int = 0

    @property
    def total(self) -> int:
        return self.yes + self.no

    @property
    def outcome(self) -> VoteChoice:
        return decide_outcome(self.yes, self.no)

    def to_dict(self) -> dict[str, int]:
        return {"YES": self.yes, "NO": self.no}


@dataclass(frozen=True)
class ScoreDelta:
    """Score change applied to one voter at settlement."""

    agent_id: str
    agent_name: str
    choice: VoteChoice
    delta: int

    def render(self) -> str:
        return f"{self.agent_name}: {format_delta(self.delta)}"


def tally_votes(votes: Iterable[VoteRecord]) -> VoteTally:
    yes = no = 0
    for v in votes:
        if v.choice == VoteChoice.YES:
            yes += 1
        else:
            no += 1
    return VoteTally(yes=yes, no=no)


def decide_outcome(yes: int, no: int) -> VoteChoice:
    """Simple majority; a tie goes to YES."""
    return VoteChoice.YES if yes >= no else VoteChoice.NO


def score_delta(
    choice: VoteChoice,
    outcome: VoteChoice,
    correct: int = CORRECT_VOTE_DELTA,
    wrong: int = WRONG_VOTE_DELTA,
) -> int:
    return correct if choice == outcome else wrong


def compute_deltas(
    votes: Iterable[VoteRecord],
    outcome: VoteChoice,
    correct: int = CORRECT_VOTE_DELTA,
    wrong: int = WRONG_VOTE_DELTA,
) -> list[ScoreDelta]:
    """One delta per vote, in vote order."""
    return [
        ScoreDelta(
            agent_id=v.agent_id,
            agent_name=v.agent_name or v.agent_id,
            choice=v.choice,
            delta=score_delta(v.choice, outcome, correct, wrong),
        )
        for v in votes
    ]


def format_delta(delta: int) -> str:
    return f"+{delta}" if delta > 0 else str(delta)


def settlement_summary(tally: VoteTally, deltas: list[ScoreDelta]) -> str:
    """Feed message announcing a closed round."""
    outcome = tally.outcome.value
    if not tally.total:
        return f"Round closed with no votes: outcome {outcome}"
    scores = ", ".join(d.render() for d in deltas)
    return (
        f"Round closed: outcome {outcome} "
        f"({tally.yes} YES / {tally.no} NO). Scores: {scores}"
    )
