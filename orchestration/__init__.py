"""Orchestration layer – round lifecycle, settlement, ledger and scheduling.

Only the dependency-free modules are re-exported here because the data
layer imports them; import the components from their own modules.
"""

from orchestration.clock import Clock, FakeClock, SystemClock
from orchestration.config import GameConfig, load_config
from orchestration.exceptions import (
    ConflictError,
    CouncilError,
    NoOpenRoundError,
    NotFoundError,
    RoundClosedError,
    RoundNotFoundError,
    StoreError,
    ValidationError,
)

__all__ = [
    "Clock",
    "ConflictError",
    "CouncilError",
    "FakeClock",
    "GameConfig",
    "NoOpenRoundError",
    "NotFoundError",
    "RoundClosedError",
    "RoundNotFoundError",
    "StoreError",
    "SystemClock",
    "ValidationError",
    "load_config",
]
