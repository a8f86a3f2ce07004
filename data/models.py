"""Pydantic models mirroring the SQLite schema.

Rounds are a tagged variant: an ``OpenRound`` can be closed, a
``ClosedRound`` cannot.  The ``status`` field is the discriminator used
when rows are loaded back from the store.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class VoteChoice(str, Enum):
    YES = "YES"
    NO = "NO"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    SELECTED = "selected"
    EXPIRED = "expired"


class FeedType(str, Enum):
    """Type tags carried by feed entries."""

    PROPOSAL = "proposal"
    VOTE = "vote"
    DEBATE = "debate"
    CLOSE = "close"
    SYSTEM = "system"


class AgentRecord(BaseModel):
    """Row in the ``agents`` table."""

    id: str
    name: str
    description: str = ""
    api_key: str
    claimed: bool = True
    score: int = 0
    created_at: int
    last_active_at: int = 0


# ---------------------------------------------------------------------------
# Rounds
# ---------------------------------------------------------------------------

class OpenRound(BaseModel):
    """A round that still accepts votes and debate entries."""

    id: str
    proposal: str
    proposed_by: str | None = None
    created_at: int
    closes_at: int
    status: Literal["open"] = "open"

    def is_expired(self, now: int) -> bool:
        return self.closes_at <= now

    def close(self, outcome: VoteChoice, closed_at: int) -> ClosedRound:
        """The only transition a round has."""
        return ClosedRound(
            id=self.id,
            proposal=self.proposal,
            proposed_by=self.proposed_by,
            created_at=self.created_at,
            closes_at=self.closes_at,
            outcome=outcome,
            closed_at=closed_at,
        )


class ClosedRound(BaseModel):
    """A settled round.  Immutable history."""

    id: str
    proposal: str
    proposed_by: str | None = None
    created_at: int
    closes_at: int
    status: Literal["closed"] = "closed"
    outcome: VoteChoice
    closed_at: int


Round = Annotated[Union[OpenRound, ClosedRound], Field(discriminator="status")]

_ROUND_ADAPTER: TypeAdapter[Any] = TypeAdapter(Round)


def round_from_row(row: dict[str, Any]) -> OpenRound | ClosedRound:
    """Build the right round variant from a ``rounds`` row."""
    return _ROUND_ADAPTER.validate_python(row)


# ---------------------------------------------------------------------------
# Ledger rows
# ---------------------------------------------------------------------------

class VoteRecord(BaseModel):
    """Row in the ``votes`` table.  ``agent_name`` is filled by joined reads."""

    id: str
    round_id: str
    agent_id: str
    choice: VoteChoice
    rationale: str
    created_at: int
    agent_name: str | None = None


class DebateEntryRecord(BaseModel):
    """Row in the ``debates`` table."""

    id: str
    round_id: str
    agent_id: str
    message: str
    created_at: int
    agent_name: str | None = None


class ProposalRecord(BaseModel):
    """Row in the ``proposals`` table."""

    id: str
    agent_id: str
    text: str
    upvotes: int = 0
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: int
    agent_name: str | None = None


class FeedEntryRecord(BaseModel):
    """Row in the ``feed`` table.  Never updated once written."""

    id: str
    type: FeedType
    round_id: str | None = None
    agent_id: str | None = None
    message: str
    created_at: int
