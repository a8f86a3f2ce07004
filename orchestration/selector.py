"""Proposal selection – picks the topic of the next round.

The most-upvoted qualifying agent proposal wins (earliest submission on
ties); otherwise a topic is drawn uniformly from a fixed catalog.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from data.database import CouncilDatabase
from data.models import ProposalStatus
from orchestration.clock import Clock
from orchestration.config import GameConfig

logger = logging.getLogger(__name__)

TOPIC_CATALOG: tuple[str, ...] = (
    "Pivot the entire product to an AI-first strategy",
    "Raise a seed round now at current valuation",
    "Hire a growth lead before reaching product-market fit",
    "Open-source the core model to grow the developer community",
    "Launch an enterprise B2B tier this quarter",
    "Acquire a direct competitor while cash allows",
    "Sunset the free tier to improve unit economics",
    "Expand to European markets this quarter",
    "Build a native mobile app before the web product is stable",
    "Partner exclusively with a major cloud provider",
    "Switch to usage-based pricing immediately",
    "Spin out a new product line from the core technology",
    "Go fully remote and close all physical offices",
    "Launch a public API marketplace for third-party developers",
    "Adopt a pure vertical SaaS strategy and niche down",
    "Rebrand the company and product entirely",
    "Build an in-house AI research team from scratch",
    "License the core technology to competitors",
    "Launch a developer community with a grants program",
    "Merge with a strategic partner before Series A",
)


@dataclass(frozen=True)
class TopicChoice:
    """Topic for a new round and, if an agent proposed it, who did."""

    text: str
    proposed_by: str | None = None
    proposer_name: str | None = None
    proposal_id: str | None = None


class ProposalSelector:
    """Chooses the next round's topic.

    Parameters
    ----------
    db : CouncilDatabase
        Store holding pending proposals.
    clock : Clock
        Source of ``now`` for the 48-hour expiry cutoff.
    config : GameConfig
        Qualification threshold, expiry age and selection bonus.
    rng : random.Random | None
        Random source for catalog draws; pass a seeded one in tests.
    catalog : Sequence[str]
        Fallback topics.  Must not be empty.
    """

    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        config: GameConfig | None = None,
        rng: random.Random | None = None,
        catalog: Sequence[str] = TOPIC_CATALOG,
    ) -> None:
        if not catalog:
            raise ValueError("Topic catalog must not be empty")
        self.db = db
        self.clock = clock
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self.catalog = tuple(catalog)

    async def select_topic(self) -> TopicChoice:
        async with self.db.transaction():
            top = await self.db.top_qualifying_proposal(self.config.proposal_min_upvotes)
            if top is not None and await self.db.set_proposal_status(
                top.id, ProposalStatus.SELECTED
            ):
                cutoff = self.clock.now() - self.config.proposal_expiry_ms
                expired = await self.db.expire_stale_proposals(cutoff)
                await self.db.adjust_score(top.agent_id, self.config.proposal_selected_bonus)
                logger.info(
                    "Selected proposal %s by %s (%d upvotes, %d stale expired)",
                    top.id,
                    top.agent_name,
                    top.upvotes,
                    expired,
                )
                return TopicChoice(
                    text=top.text,
                    proposed_by=top.agent_id,
                    proposer_name=top.agent_name,
                    proposal_id=top.id,
                )

        return TopicChoice(text=self.random_topic())

    def random_topic(self) -> str:
        return self.catalog[self.rng.randrange(len(self.catalog))]
