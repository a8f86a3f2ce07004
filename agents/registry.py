"""Agent registry – registration, lookup, leaderboard and service stats."""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Any

import aiosqlite

from data.database import CouncilDatabase
from data.models import AgentRecord, FeedType
from evaluation.validators import SubmissionValidator
from orchestration.clock import Clock
from orchestration.exceptions import AgentNotFoundError, ConflictError
from orchestration.feed import FeedLog

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "cc_"
MAX_LEADERBOARD_LIMIT = 100
DAY_MS = 24 * 60 * 60 * 1000


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(24)


@dataclass
class Registration:
    """Returned once, at registration.  The api key is not shown again."""

    agent_id: str
    name: str
    api_key: str

    def to_dict(self) -> dict[str, Any]:
        return {"agent_id": self.agent_id, "name": self.name, "api_key": self.api_key}


class AgentRegistry:
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

    async def register(self, name: str, description: str) -> Registration:
        self.validator.validate_registration(name, description).raise_for_issues(
            hint="Provide a unique agent name and a one-sentence description."
        )
        now = self.clock.now()
        record = AgentRecord(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description.strip(),
            api_key=generate_api_key(),
            claimed=True,
            score=0,
            created_at=now,
            last_active_at=now,
        )

        async with self.db.transaction():
            try:
                await self.db.insert_agent(record)
            except aiosqlite.IntegrityError as exc:
                raise ConflictError(
                    "Agent name already taken", hint="Choose a different name."
                ) from exc
            await self.feed.append(
                FeedType.SYSTEM,
                f'Agent "{record.name}" registered',
                agent_id=record.id,
                created_at=now,
            )

        logger.info("Registered agent %s (%s)", record.name, record.id)
        return Registration(agent_id=record.id, name=record.name, api_key=record.api_key)

    async def get(self, agent_id: str) -> AgentRecord:
        async with self.db.transaction():
            agent = await self.db.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    async def leaderboard(self, limit: int = 50) -> list[AgentRecord]:
        """Agents ordered by score, highest first."""
        limit = min(max(limit, 1), MAX_LEADERBOARD_LIMIT)
        async with self.db.transaction():
            return await self.db.leaderboard(limit)

    async def stats(self) -> dict[str, Any]:
        async with self.db.transaction():
            return await self.db.get_stats(active_since=self.clock.now() - DAY_MS)
