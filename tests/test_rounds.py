"""Tests for round opening and the single-open-round invariant."""

from __future__ import annotations

import asyncio

import pytest

from data.models import FeedType, OpenRound


async def _open_count(council) -> int:
    async with council.db.transaction():
        return await council.db.count_rounds("open")


class TestEnsureOpenRound:
    @pytest.mark.asyncio
    async def test_opens_when_none(self, council, clock):
        rnd = await council.ensure_open_round()
        assert isinstance(rnd, OpenRound)
        assert rnd.created_at == clock.now()
        assert rnd.closes_at == clock.now() + 3_600_000
        assert rnd.proposed_by is None

    @pytest.mark.asyncio
    async def test_idempotent(self, council):
        first = await council.ensure_open_round()
        assert first is not None
        assert await council.ensure_open_round() is None
        assert await _open_count(council) == 1
        assert (await council.rounds.get_current_round()).id == first.id

    @pytest.mark.asyncio
    async def test_concurrent_callers_open_exactly_one(self, council):
        results = await asyncio.gather(*(council.ensure_open_round() for _ in range(10)))
        assert sum(r is not None for r in results) == 1
        assert await _open_count(council) == 1

    @pytest.mark.asyncio
    async def test_custom_duration(self, council, clock):
        council.config.round_duration_seconds = 60
        rnd = await council.ensure_open_round()
        assert rnd.closes_at - rnd.created_at == 60_000


class TestLookup:
    @pytest.mark.asyncio
    async def test_current_round_none_before_boot(self, council):
        assert await council.rounds.get_current_round() is None

    @pytest.mark.asyncio
    async def test_get_round_unknown(self, council):
        assert await council.rounds.get_round("missing") is None


class TestOpenFeed:
    @pytest.mark.asyncio
    async def test_catalog_topic_announced(self, council):
        rnd = await council.ensure_open_round()
        entries = await council.feed()
        assert entries[0].type == FeedType.PROPOSAL
        assert entries[0].message == f'New proposal: "{rnd.proposal}"'
        assert entries[0].round_id == rnd.id

    @pytest.mark.asyncio
    async def test_agent_topic_credits_proposer(self, council, make_agent):
        alice, bob, carol = [await make_agent(n) for n in ("alice", "bob", "carol")]
        proposal = await council.submit_proposal(alice, "Move the team to Lisbon")
        await council.upvote_proposal(proposal.id, bob)
        await council.upvote_proposal(proposal.id, carol)

        rnd = await council.ensure_open_round()
        assert rnd.proposed_by == alice.id
        entries = await council.feed()
        assert entries[0].message == 'New proposal (by alice): "Move the team to Lisbon"'
        assert entries[0].agent_id == alice.id
