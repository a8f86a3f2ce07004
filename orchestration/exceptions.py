"""Exceptions raised by the council core.

Every rejected operation names the precondition that failed and, where
it helps an autonomous caller recover, a hint about what to do next.
"""

from __future__ import annotations

from typing import Any


class CouncilError(Exception):
    """Base exception for all council errors."""

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}


# =============================================================================
# Validation
# =============================================================================


class ValidationError(CouncilError):
    """Malformed, missing or out-of-range input.  Nothing was written."""

    def __init__(self, issues: list[str], hint: str | None = None) -> None:
        super().__init__("; ".join(issues), hint=hint, details={"issues": issues})
        self.issues = issues


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(CouncilError):
    pass


class RoundNotFoundError(NotFoundError):
    def __init__(self, round_id: str) -> None:
        super().__init__(
            "Round not found",
            hint="Fetch the current round for the latest round_id.",
            details={"round_id": round_id},
        )
        self.round_id = round_id


class NoOpenRoundError(NotFoundError):
    """No round is open.  Transient: the scheduler opens one on its next tick."""

    def __init__(self, tick_interval_seconds: int = 30) -> None:
        super().__init__(
            "No open round",
            hint=(
                "A new round should open automatically within "
                f"{tick_interval_seconds} seconds."
            ),
        )


class ProposalNotFoundError(NotFoundError):
    def __init__(self, proposal_id: str) -> None:
        super().__init__(
            "Proposal not found",
            hint="Make sure the proposal exists and is still pending.",
            details={"proposal_id": proposal_id},
        )
        self.proposal_id = proposal_id


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str) -> None:
        super().__init__("Agent not found", details={"agent_id": agent_id})
        self.agent_id = agent_id


# =============================================================================
# Conflicts
# =============================================================================


class ConflictError(CouncilError):
    """The request is well-formed but clashes with current state."""


class RoundClosedError(ConflictError):
    def __init__(self, round_id: str) -> None:
        super().__init__(
            "Round is closed",
            hint="Wait for the next round to start, then fetch its round_id.",
            details={"round_id": round_id},
        )
        self.round_id = round_id


# =============================================================================
# Infrastructure
# =============================================================================


class StoreError(CouncilError):
    """The store failed mid-transaction.  The transaction was rolled back."""
