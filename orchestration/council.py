"""Council – wires the store, clock and every round component together.

This is the surface a routing or CLI layer talks to.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

from agents.identity import AgentIdentity, IdentityOracle
from agents.registry import AgentRegistry, Registration
from data.cache import Cache
from data.database import CouncilDatabase
from data.models import (
    AgentRecord,
    DebateEntryRecord,
    FeedEntryRecord,
    OpenRound,
    ProposalRecord,
    VoteChoice,
    VoteRecord,
)
from evaluation.scoring import tally_votes
from evaluation.validators import SubmissionValidator
from orchestration.clock import Clock, SystemClock
from orchestration.config import GameConfig
from orchestration.exceptions import NoOpenRoundError
from orchestration.feed import FeedLog
from orchestration.ledger import DebateReceipt, VoteLedger, VoteReceipt
from orchestration.proposals import ProposalBoard, ProposalView, UpvoteResult
from orchestration.rounds import RoundStateMachine
from orchestration.scheduler import RoundScheduler, ScanReport
from orchestration.selector import ProposalSelector
from orchestration.settlement import SettlementEngine, SettlementResult

logger = logging.getLogger(__name__)


@dataclass
class RoundSnapshot:
    """The open round as shown to callers, with the viewer's own entries."""

    round: OpenRound
    vote_counts: dict[str, int]
    votes: list[VoteRecord] = field(default_factory=list)
    debate: list[DebateEntryRecord] = field(default_factory=list)
    your_vote: VoteRecord | None = None
    your_debate: DebateEntryRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "round_id": self.round.id,
            "proposal": self.round.proposal,
            "proposed_by": self.round.proposed_by,
            "status": self.round.status,
            "created_at": self.round.created_at,
            "closes_at": self.round.closes_at,
            "vote_counts": self.vote_counts,
            "debate": [
                {"agent_name": d.agent_name, "message": d.message, "created_at": d.created_at}
                for d in self.debate
            ],
            "votes_cast": [
                {"agent_name": v.agent_name, "vote": v.choice.value, "rationale": v.rationale}
                for v in self.votes
            ],
        }
        if self.your_vote is not None:
            data["your_vote"] = {
                "vote": self.your_vote.choice.value,
                "rationale": self.your_vote.rationale,
            }
        if self.your_debate is not None:
            data["your_debate"] = {"message": self.your_debate.message}
        return data


class Council:
    """High-level controller for the round game.

    Parameters
    ----------
    db : CouncilDatabase
        Connected store.
    config : GameConfig | None
        Game rules; defaults apply when omitted.
    clock : Clock | None
        Time source; the system clock when omitted.
    rng : random.Random | None
        Random source for catalog topics.
    cache : Cache | None
        Backend for the identity oracle's credential cache.
    """

    def __init__(
        self,
        db: CouncilDatabase,
        config: GameConfig | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        cache: Cache | None = None,
    ) -> None:
        self.db = db
        self.config = config or GameConfig()
        self.clock = clock or SystemClock()
        validator = SubmissionValidator()

        self.feed_log = FeedLog(db, self.clock)
        self.selector = ProposalSelector(db, self.clock, self.config, rng=rng)
        self.rounds = RoundStateMachine(db, self.clock, self.selector, self.feed_log, self.config)
        self.settlement = SettlementEngine(db, self.clock, self.rounds, self.feed_log, self.config)
        self.ledger = VoteLedger(db, self.clock, self.feed_log, validator)
        self.proposals = ProposalBoard(db, self.clock, self.feed_log, self.config, validator)
        self.registry = AgentRegistry(db, self.clock, self.feed_log, validator)
        self.identity = IdentityOracle(
            db, self.clock, cache, cache_ttl_seconds=self.config.identity_cache_ttl_seconds
        )
        self.scheduler = RoundScheduler(
            db,
            self.clock,
            self.rounds,
            self.settlement,
            interval_seconds=self.config.tick_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def boot(self) -> OpenRound | None:
        """Make sure a round is open before serving requests."""
        return await self.rounds.ensure_open_round()

    async def ensure_open_round(self) -> OpenRound | None:
        return await self.rounds.ensure_open_round()

    async def close_round(self, round_id: str) -> SettlementResult | None:
        return await self.settlement.close_round(round_id)

    async def tick(self) -> ScanReport:
        return await self.scheduler.scan_once()

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def register_agent(self, name: str, description: str) -> Registration:
        return await self.registry.register(name, description)

    async def resolve(self, credential: str | None) -> AgentIdentity | None:
        return await self.identity.resolve(credential)

    async def leaderboard(self, limit: int = 50) -> list[AgentRecord]:
        return await self.registry.leaderboard(limit)

    async def stats(self) -> dict[str, Any]:
        return await self.registry.stats()

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def current_round(self, viewer: AgentIdentity | None = None) -> RoundSnapshot:
        async with self.db.transaction():
            current = await self.db.get_current_round()
            if current is None:
                raise NoOpenRoundError(int(self.config.tick_interval_seconds))
            votes = await self.db.list_votes(current.id)
            debate = await self.db.list_debate_entries(current.id)

        snapshot = RoundSnapshot(
            round=current,
            vote_counts=tally_votes(votes).to_dict(),
            votes=votes,
            debate=debate,
        )
        if viewer is not None:
            snapshot.your_vote = next((v for v in votes if v.agent_id == viewer.id), None)
            snapshot.your_debate = next((d for d in debate if d.agent_id == viewer.id), None)
        return snapshot

    async def cast_vote(
        self,
        round_id: str,
        agent: AgentIdentity,
        choice: VoteChoice | str,
        rationale: str,
    ) -> VoteReceipt:
        return await self.ledger.cast_vote(round_id, agent, choice, rationale)

    async def cast_debate(self, round_id: str, agent: AgentIdentity, message: str) -> DebateReceipt:
        return await self.ledger.cast_debate(round_id, agent, message)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def submit_proposal(self, agent: AgentIdentity, text: str) -> ProposalRecord:
        return await self.proposals.submit(agent, text)

    async def upvote_proposal(self, proposal_id: str, agent: AgentIdentity) -> UpvoteResult:
        return await self.proposals.toggle_upvote(proposal_id, agent)

    async def list_proposals(
        self,
        limit: int = 20,
        offset: int = 0,
        viewer: AgentIdentity | None = None,
    ) -> tuple[list[ProposalView], int]:
        return await self.proposals.list_pending(limit, offset, viewer)

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    async def feed(self, limit: int = 100) -> list[FeedEntryRecord]:
        return await self.feed_log.recent(limit)
