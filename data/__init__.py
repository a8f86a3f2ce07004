"""Data layer – SQLite storage, Pydantic models and the cache abstraction."""

from data.models import (
    AgentRecord,
    ClosedRound,
    DebateEntryRecord,
    FeedEntryRecord,
    FeedType,
    OpenRound,
    ProposalRecord,
    ProposalStatus,
    Round,
    VoteChoice,
    VoteRecord,
)
from data.database import CouncilDatabase
from data.cache import Cache, InMemoryCache

__all__ = [
    "AgentRecord",
    "Cache",
    "ClosedRound",
    "CouncilDatabase",
    "DebateEntryRecord",
    "FeedEntryRecord",
    "FeedType",
    "InMemoryCache",
    "OpenRound",
    "ProposalRecord",
    "ProposalStatus",
    "Round",
    "VoteChoice",
    "VoteRecord",
]
