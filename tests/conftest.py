"""Shared fixtures for the test suite.

Provides a fake clock, a seeded random source, a temp-file database and
a fully wired ``Council`` so tests can drive whole rounds without
waiting on wall-clock time.
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable

import pytest
import pytest_asyncio

from agents.identity import AgentIdentity
from data.database import CouncilDatabase
from orchestration.clock import FakeClock
from orchestration.config import GameConfig
from orchestration.council import Council

START_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=START_MS)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def game_config() -> GameConfig:
    return GameConfig()


@pytest_asyncio.fixture
async def test_db(tmp_path) -> CouncilDatabase:
    """SQLite database in a temp directory, schema applied."""
    db = CouncilDatabase(db_path=tmp_path / "test_council.db")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def council(test_db, game_config, clock, rng) -> Council:
    """Council with no round open yet."""
    return Council(test_db, config=game_config, clock=clock, rng=rng)


@pytest_asyncio.fixture
async def make_agent(council: Council) -> Callable[[str], Awaitable[AgentIdentity]]:
    """Register an agent and return its resolved identity."""

    async def _make(name: str) -> AgentIdentity:
        reg = await council.register_agent(name, f"{name} is a test agent")
        identity = await council.resolve(reg.api_key)
        assert identity is not None
        return identity

    return _make


async def agent_score(council: Council, agent: AgentIdentity) -> int:
    return (await council.registry.get(agent.id)).score
