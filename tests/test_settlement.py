"""Tests for atomic round settlement."""

from __future__ import annotations

import asyncio

import pytest

from data.models import ClosedRound, FeedType, OpenRound, VoteChoice
from orchestration.exceptions import RoundClosedError, RoundNotFoundError
from tests.conftest import agent_score


async def _close_entries(council):
    return [e for e in await council.feed(200) if e.type == FeedType.CLOSE]


class TestOutcome:
    @pytest.mark.asyncio
    async def test_tie_resolves_yes(self, council, make_agent):
        rnd = await council.ensure_open_round()
        agents = [await make_agent(n) for n in ("a1", "a2", "a3", "a4")]
        for agent, choice in zip(agents, ["YES", "YES", "NO", "NO"]):
            await council.cast_vote(rnd.id, agent, choice, "reasoned view")

        result = await council.close_round(rnd.id)
        assert result.outcome == VoteChoice.YES
        assert (result.yes_count, result.no_count) == (2, 2)
        assert [await agent_score(council, a) for a in agents] == [3, 3, -1, -1]
        assert result.total_delta == 4

    @pytest.mark.asyncio
    async def test_majority_no(self, council, make_agent):
        rnd = await council.ensure_open_round()
        alice, bob, carol = [await make_agent(n) for n in ("alice", "bob", "carol")]
        await council.cast_vote(rnd.id, alice, "YES", "go")
        await council.cast_vote(rnd.id, bob, "NO", "wait")
        await council.cast_vote(rnd.id, carol, "NO", "wait")

        result = await council.close_round(rnd.id)
        assert result.outcome == VoteChoice.NO
        assert result.to_dict()["deltas"] == {"alice": -1, "bob": 3, "carol": 3}

    @pytest.mark.asyncio
    async def test_no_votes(self, council, clock):
        rnd = await council.ensure_open_round()
        clock.advance(seconds=3600)

        result = await council.close_round(rnd.id)
        assert result.outcome == VoteChoice.YES
        assert result.deltas == []
        closes = await _close_entries(council)
        assert [e.message for e in closes] == ["Round closed with no votes: outcome YES"]
        assert closes[0].created_at == clock.now()


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_close_opens_next_round(self, council):
        rnd = await council.ensure_open_round()
        result = await council.close_round(rnd.id)

        closed = await council.rounds.get_round(rnd.id)
        assert isinstance(closed, ClosedRound)
        assert closed.outcome == VoteChoice.YES
        current = await council.rounds.get_current_round()
        assert isinstance(current, OpenRound)
        assert current.id == result.next_round_id != rnd.id
        async with council.db.transaction():
            assert await council.db.count_rounds("open") == 1

    @pytest.mark.asyncio
    async def test_second_close_is_noop(self, council, make_agent):
        rnd = await council.ensure_open_round()
        alice = await make_agent("alice")
        await council.cast_vote(rnd.id, alice, "YES", "go")

        assert await council.close_round(rnd.id) is not None
        assert await council.close_round(rnd.id) is None
        assert await agent_score(council, alice) == 3
        assert len(await _close_entries(council)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_closes_settle_once(self, council, make_agent):
        rnd = await council.ensure_open_round()
        alice = await make_agent("alice")
        await council.cast_vote(rnd.id, alice, "NO", "wait")

        results = await asyncio.gather(*(council.close_round(rnd.id) for _ in range(5)))
        assert sum(r is not None for r in results) == 1
        assert await agent_score(council, alice) == 3
        assert len(await _close_entries(council)) == 1
        async with council.db.transaction():
            assert await council.db.count_rounds("open") == 1
            assert await council.db.count_rounds("closed") == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_everything_back(self, council, make_agent, monkeypatch):
        rnd = await council.ensure_open_round()
        alice = await make_agent("alice")
        await council.cast_vote(rnd.id, alice, "YES", "go")

        async def broken_open_round():
            raise RuntimeError("topic source down")

        monkeypatch.setattr(council.rounds, "open_round", broken_open_round)
        with pytest.raises(RuntimeError):
            await council.close_round(rnd.id)

        assert isinstance(await council.rounds.get_round(rnd.id), OpenRound)
        assert await agent_score(council, alice) == 0
        assert await _close_entries(council) == []

    @pytest.mark.asyncio
    async def test_unknown_round(self, council):
        with pytest.raises(RoundNotFoundError):
            await council.close_round("no-such-round")


class TestAfterClose:
    @pytest.mark.asyncio
    async def test_vote_on_closed_round_rejected(self, council, make_agent):
        rnd = await council.ensure_open_round()
        alice = await make_agent("alice")
        await council.close_round(rnd.id)

        with pytest.raises(RoundClosedError):
            await council.cast_vote(rnd.id, alice, "YES", "too late")
        with pytest.raises(RoundClosedError):
            await council.cast_debate(rnd.id, alice, "too late")

    @pytest.mark.asyncio
    async def test_late_vote_before_settlement_counts(self, council, make_agent, clock):
        rnd = await council.ensure_open_round()
        alice = await make_agent("alice")
        clock.advance(seconds=3700)
        await council.cast_vote(rnd.id, alice, "NO", "squeezed in")

        result = await council.close_round(rnd.id)
        assert result.outcome == VoteChoice.NO
        assert await agent_score(council, alice) == 3
