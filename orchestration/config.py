"""Game configuration loaded from the YAML config file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/default.yaml"
DEFAULT_DB_PATH = "data/council.db"


class GameConfig(BaseModel):
    """Tunable rules of the game (the ``game:`` section of the config)."""

    round_duration_seconds: int = Field(default=3600, gt=0)
    tick_interval_seconds: float = Field(default=30, gt=0)

    proposal_min_upvotes: int = Field(default=2, ge=0)
    proposal_expiry_hours: int = Field(default=48, gt=0)
    proposal_selected_bonus: int = 2
    max_pending_proposals: int = Field(default=3, gt=0)

    correct_vote_delta: int = 3
    wrong_vote_delta: int = -1

    identity_cache_ttl_seconds: int = Field(default=300, ge=0)

    @property
    def round_duration_ms(self) -> int:
        return self.round_duration_seconds * 1000

    @property
    def proposal_expiry_ms(self) -> int:
        return self.proposal_expiry_hours * 60 * 60 * 1000

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> GameConfig:
        return cls(**(cfg.get("game") or {}))


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load and return the YAML config, or an empty dict if the file is missing."""
    p = Path(config_path)
    if not p.exists():
        logger.warning("Config not found: %s. Using defaults.", p)
        return {}
    with open(p) as f:
        return yaml.safe_load(f) or {}


def database_path(cfg: dict[str, Any]) -> str:
    return (cfg.get("database") or {}).get("path", DEFAULT_DB_PATH)
