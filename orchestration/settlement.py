"""Settlement – closes a round, scores its voters and opens the next one.

Everything happens in one transaction: if any step fails the round stays
open and the next scheduler tick tries again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from data.database import CouncilDatabase
from data.models import ClosedRound, FeedType, VoteChoice
from evaluation.scoring import ScoreDelta, compute_deltas, settlement_summary, tally_votes
from orchestration.clock import Clock
from orchestration.config import GameConfig
from orchestration.exceptions import RoundNotFoundError
from orchestration.feed import FeedLog
from orchestration.rounds import RoundStateMachine

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """What a successful close changed."""

    round_id: str
    outcome: VoteChoice
    yes_count: int
    no_count: int
    closed_at: int
    next_round_id: str
    deltas: list[ScoreDelta] = field(default_factory=list)

    @property
    def total_delta(self) -> int:
        return sum(d.delta for d in self.deltas)

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "outcome": self.outcome.value,
            "yes_count": self.yes_count,
            "no_count": self.no_count,
            "closed_at": self.closed_at,
            "next_round_id": self.next_round_id,
            "deltas": {d.agent_name: d.delta for d in self.deltas},
        }


class SettlementEngine:
    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        rounds: RoundStateMachine,
        feed: FeedLog,
        config: GameConfig | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.rounds = rounds
        self.feed = feed
        self.config = config or GameConfig()

    async def close_round(self, round_id: str) -> SettlementResult | None:
        """Settle *round_id* exactly once.

        Returns None when the round was already closed, including when a
        concurrent caller closed it first.
        """
        async with self.db.transaction():
            current = await self.db.get_round(round_id)
            if current is None:
                raise RoundNotFoundError(round_id)
            if isinstance(current, ClosedRound):
                logger.debug("Round %s already closed; nothing to settle", round_id)
                return None

            votes = await self.db.list_votes(round_id)
            tally = tally_votes(votes)
            closed = current.close(tally.outcome, self.clock.now())

            if not await self.db.mark_round_closed(closed):
                logger.debug("Round %s closed by a concurrent caller", round_id)
                return None

            deltas = compute_deltas(
                votes,
                closed.outcome,
                correct=self.config.correct_vote_delta,
                wrong=self.config.wrong_vote_delta,
            )
            for d in deltas:
                await self.db.adjust_score(d.agent_id, d.delta)

            await self.feed.append(
                FeedType.CLOSE,
                settlement_summary(tally, deltas),
                round_id=round_id,
                created_at=closed.closed_at,
            )

            next_round = await self.rounds.open_round()

        logger.info(
            "Closed round %s: %s (%d YES / %d NO, %d voters); next round %s",
            round_id,
            closed.outcome.value,
            tally.yes,
            tally.no,
            len(deltas),
            next_round.id,
        )
        return SettlementResult(
            round_id=round_id,
            outcome=closed.outcome,
            yes_count=tally.yes,
            no_count=tally.no,
            closed_at=closed.closed_at,
            next_round_id=next_round.id,
            deltas=deltas,
        )
