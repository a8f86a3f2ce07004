"""Round state machine – opening rounds and keeping exactly one open."""

from __future__ import annotations

import logging
import uuid

from data.database import CouncilDatabase
from data.models import ClosedRound, FeedType, OpenRound
from orchestration.clock import Clock
from orchestration.config import GameConfig
from orchestration.feed import FeedLog
from orchestration.selector import ProposalSelector

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """Owns round creation and lookup.

    Closing is the settlement engine's job; it calls ``open_round`` inside
    its own transaction so the next round appears atomically with the
    close of the previous one.
    """

    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        selector: ProposalSelector,
        feed: FeedLog,
        config: GameConfig | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.selector = selector
        self.feed = feed
        self.config = config or GameConfig()

    async def ensure_open_round(self) -> OpenRound | None:
        """Open a round if none is open.  Returns the new round, or None."""
        async with self.db.transaction():
            if await self.db.has_open_round():
                return None
            return await self.open_round()

    async def open_round(self) -> OpenRound:
        async with self.db.transaction():
            topic = await self.selector.select_topic()
            now = self.clock.now()
            new_round = OpenRound(
                id=str(uuid.uuid4()),
                proposal=topic.text,
                proposed_by=topic.proposed_by,
                created_at=now,
                closes_at=now + self.config.round_duration_ms,
            )
            await self.db.insert_round(new_round)

            if topic.proposed_by:
                message = f'New proposal (by {topic.proposer_name}): "{topic.text}"'
            else:
                message = f'New proposal: "{topic.text}"'
            await self.feed.append(
                FeedType.PROPOSAL,
                message,
                round_id=new_round.id,
                agent_id=topic.proposed_by,
                created_at=now,
            )

        logger.info("Opened round %s: %r (closes at %d)", new_round.id, topic.text, new_round.closes_at)
        return new_round

    async def get_current_round(self) -> OpenRound | None:
        """Most recently created open round, or None if there is none."""
        async with self.db.transaction():
            return await self.db.get_current_round()

    async def get_round(self, round_id: str) -> OpenRound | ClosedRound | None:
        async with self.db.transaction():
            return await self.db.get_round(round_id)
