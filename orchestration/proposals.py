"""Proposal board – agent-submitted topics competing for the next round."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import aiosqlite

from agents.identity import AgentIdentity
from data.database import CouncilDatabase
from data.models import FeedType, ProposalRecord, ProposalStatus
from evaluation.validators import SubmissionValidator
from orchestration.clock import Clock
from orchestration.config import GameConfig
from orchestration.exceptions import ConflictError, ProposalNotFoundError
from orchestration.feed import FeedLog

logger = logging.getLogger(__name__)

MAX_PROPOSAL_LIMIT = 100


@dataclass
class UpvoteResult:
    upvoted: bool
    new_count: int


@dataclass
class ProposalView:
    """A pending proposal as seen by one (optional) viewer."""

    proposal: ProposalRecord
    your_upvote: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.proposal.id,
            "agent_id": self.proposal.agent_id,
            "agent_name": self.proposal.agent_name,
            "text": self.proposal.text,
            "upvotes": self.proposal.upvotes,
            "created_at": self.proposal.created_at,
            "your_upvote": self.your_upvote,
        }


class ProposalBoard:
    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        feed: FeedLog,
        config: GameConfig | None = None,
        validator: SubmissionValidator | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.feed = feed
        self.config = config or GameConfig()
        self.validator = validator or SubmissionValidator()

    async def submit(self, agent: AgentIdentity, text: str) -> ProposalRecord:
        self.validator.validate_proposal(text).raise_for_issues(
            hint=(
                f"Submit a proposal topic between {self.validator.min_proposal_length} "
                f"and {self.validator.max_proposal_length} characters."
            )
        )
        text = text.strip()
        limit = self.config.max_pending_proposals

        async with self.db.transaction():
            if await self.db.count_pending_proposals(agent.id) >= limit:
                raise ConflictError(
                    f"You already have {limit} pending proposals",
                    hint=(
                        "Wait for one of your existing proposals to be selected "
                        "or expire before submitting more."
                    ),
                )

            now = self.clock.now()
            record = ProposalRecord(
                id=str(uuid.uuid4()),
                agent_id=agent.id,
                text=text,
                upvotes=0,
                status=ProposalStatus.PENDING,
                created_at=now,
                agent_name=agent.name,
            )
            try:
                await self.db.insert_proposal(record)
            except aiosqlite.IntegrityError as exc:
                raise ConflictError("You already proposed this topic") from exc

            await self.feed.append(
                FeedType.SYSTEM,
                f'{agent.name} proposed: "{text}"',
                agent_id=agent.id,
                created_at=now,
            )

        logger.info("%s submitted proposal %s", agent.name, record.id)
        return record

    async def toggle_upvote(self, proposal_id: str, agent: AgentIdentity) -> UpvoteResult:
        """Upvote a pending proposal, or take a previous upvote back."""
        async with self.db.transaction():
            proposal = await self.db.get_proposal(proposal_id)
            if proposal is None or proposal.status != ProposalStatus.PENDING:
                raise ProposalNotFoundError(proposal_id)
            if proposal.agent_id == agent.id:
                raise ConflictError("Cannot upvote your own proposal")

            if await self.db.has_upvoted(proposal_id, agent.id):
                await self.db.remove_upvote(proposal_id, agent.id)
                upvoted = False
            else:
                await self.db.add_upvote(
                    str(uuid.uuid4()), proposal_id, agent.id, self.clock.now()
                )
                upvoted = True
            new_count = await self.db.get_upvotes(proposal_id)

        return UpvoteResult(upvoted=upvoted, new_count=new_count)

    async def list_pending(
        self,
        limit: int = 20,
        offset: int = 0,
        viewer: AgentIdentity | None = None,
    ) -> tuple[list[ProposalView], int]:
        """Pending proposals in selection order, and how many there are in total."""
        limit = min(max(limit, 1), MAX_PROPOSAL_LIMIT)
        offset = max(offset, 0)

        async with self.db.transaction():
            total = await self.db.count_pending_proposals()
            proposals = await self.db.list_pending_proposals(limit, offset)
            views = []
            for p in proposals:
                mine = viewer is not None and await self.db.has_upvoted(p.id, viewer.id)
                views.append(ProposalView(proposal=p, your_upvote=mine))

        return views, total
