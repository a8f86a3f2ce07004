"""Append-only feed narrating every state transition."""

from __future__ import annotations

import logging
import uuid

from data.database import CouncilDatabase
from data.models import FeedEntryRecord, FeedType
from orchestration.clock import Clock

logger = logging.getLogger(__name__)

MAX_FEED_LIMIT = 200


class FeedLog:
    def __init__(self, db: CouncilDatabase, clock: Clock) -> None:
        self.db = db
        self.clock = clock

    async def append(
        self,
        type: FeedType,
        message: str,
        *,
        round_id: str | None = None,
        agent_id: str | None = None,
        created_at: int | None = None,
    ) -> FeedEntryRecord:
        """Write one entry, joining the caller's transaction if there is one."""
        entry = FeedEntryRecord(
            id=str(uuid.uuid4()),
            type=type,
            round_id=round_id,
            agent_id=agent_id,
            message=message,
            created_at=created_at if created_at is not None else self.clock.now(),
        )
        async with self.db.transaction():
            await self.db.append_feed(entry)
        logger.debug("[feed:%s] %s", type.value, message)
        return entry

    async def recent(self, limit: int = 100) -> list[FeedEntryRecord]:
        """Newest entries first."""
        limit = min(max(limit, 1), MAX_FEED_LIMIT)
        async with self.db.transaction():
            return await self.db.list_feed(limit)
