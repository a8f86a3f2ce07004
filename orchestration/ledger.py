"""Vote and debate ledger – one vote and one argument per agent per round.

Both are upserts: a second write from the same agent in a still-open
round replaces the first instead of adding a row.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from agents.identity import AgentIdentity
from data.database import CouncilDatabase
from data.models import (
    ClosedRound,
    DebateEntryRecord,
    FeedType,
    OpenRound,
    VoteChoice,
    VoteRecord,
)
from evaluation.validators import SubmissionValidator
from orchestration.clock import Clock
from orchestration.exceptions import AgentNotFoundError, RoundClosedError, RoundNotFoundError
from orchestration.feed import FeedLog

logger = logging.getLogger(__name__)


@dataclass
class VoteReceipt:
    accepted: bool
    updated: bool
    score: int
    closes_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "vote_updated": self.updated,
            "new_score": self.score,
            "closes_at": self.closes_at,
        }


@dataclass
class DebateReceipt:
    posted: bool
    updated: bool


class VoteLedger:
    """Records votes and debate entries against the open round."""

    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        feed: FeedLog,
        validator: SubmissionValidator | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.feed = feed
        self.validator = validator or SubmissionValidator()

    async def cast_vote(
        self,
        round_id: str,
        agent: AgentIdentity,
        choice: VoteChoice | str,
        rationale: str,
    ) -> VoteReceipt:
        self.validator.validate_vote(round_id, choice, rationale).raise_for_issues(
            hint="Include round_id, vote (YES or NO) and a 1-2 sentence rationale."
        )
        choice = VoteChoice(choice)
        rationale = rationale.strip()

        async with self.db.transaction():
            current = await self._require_open_round(round_id)
            score = await self.db.get_score(agent.id)
            if score is None:
                raise AgentNotFoundError(agent.id)
            now = self.clock.now()
            record = VoteRecord(
                id=str(uuid.uuid4()),
                round_id=round_id,
                agent_id=agent.id,
                choice=choice,
                rationale=rationale,
                created_at=now,
            )
            updated = await self.db.get_vote(round_id, agent.id) is not None
            if updated:
                await self.db.update_vote(record)
            else:
                await self.db.insert_vote(record)

            verb = "changed vote to" if updated else "voted"
            await self.feed.append(
                FeedType.VOTE,
                f'{agent.name} {verb} {choice.value}: "{rationale}"',
                round_id=round_id,
                agent_id=agent.id,
                created_at=now,
            )

        logger.info("%s %s %s in round %s", agent.name, verb, choice.value, round_id)
        return VoteReceipt(accepted=True, updated=updated, score=score, closes_at=current.closes_at)

    async def cast_debate(
        self,
        round_id: str,
        agent: AgentIdentity,
        message: str,
    ) -> DebateReceipt:
        self.validator.validate_debate(round_id, message).raise_for_issues(
            hint="Include round_id and message (your 1-3 sentence argument)."
        )
        message = message.strip()

        async with self.db.transaction():
            await self._require_open_round(round_id)
            if await self.db.get_score(agent.id) is None:
                raise AgentNotFoundError(agent.id)
            now = self.clock.now()
            record = DebateEntryRecord(
                id=str(uuid.uuid4()),
                round_id=round_id,
                agent_id=agent.id,
                message=message,
                created_at=now,
            )
            updated = await self.db.get_debate_entry(round_id, agent.id) is not None
            if updated:
                await self.db.update_debate_entry(record)
            else:
                await self.db.insert_debate_entry(record)

            verb = "updated their argument" if updated else "argues"
            await self.feed.append(
                FeedType.DEBATE,
                f'{agent.name} {verb}: "{message}"',
                round_id=round_id,
                agent_id=agent.id,
                created_at=now,
            )

        return DebateReceipt(posted=True, updated=updated)

    async def _require_open_round(self, round_id: str) -> OpenRound:
        current = await self.db.get_round(round_id)
        if current is None:
            raise RoundNotFoundError(round_id)
        if isinstance(current, ClosedRound):
            raise RoundClosedError(round_id)
        return current
