"""Tests for the data layer (database + models)."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from data.database import CouncilDatabase
from data.models import (
    AgentRecord,
    ClosedRound,
    FeedEntryRecord,
    FeedType,
    OpenRound,
    VoteChoice,
    round_from_row,
)
from orchestration.exceptions import StoreError

NOW = 1_700_000_000_000


def _agent(name: str) -> AgentRecord:
    return AgentRecord(
        id=str(uuid.uuid4()), name=name, api_key=f"cc_{name}", created_at=NOW
    )


def _open_round(created_at: int = NOW) -> OpenRound:
    return OpenRound(
        id=str(uuid.uuid4()),
        proposal="Ship it",
        created_at=created_at,
        closes_at=created_at + 3_600_000,
    )


class TestRoundModels:
    def test_open_row_builds_open_round(self):
        row = {
            "id": "r1", "proposal": "p", "status": "open", "outcome": None,
            "created_at": 1, "closes_at": 2, "closed_at": None, "proposed_by": None,
        }
        rnd = round_from_row(row)
        assert isinstance(rnd, OpenRound)
        assert rnd.is_expired(2)
        assert not rnd.is_expired(1)

    def test_closed_row_builds_closed_round(self):
        row = {
            "id": "r1", "proposal": "p", "status": "closed", "outcome": "NO",
            "created_at": 1, "closes_at": 2, "closed_at": 3, "proposed_by": "a",
        }
        rnd = round_from_row(row)
        assert isinstance(rnd, ClosedRound)
        assert rnd.outcome == VoteChoice.NO
        assert rnd.proposed_by == "a"

    def test_close_transition(self):
        rnd = _open_round()
        closed = rnd.close(VoteChoice.YES, NOW + 10)
        assert isinstance(closed, ClosedRound)
        assert closed.id == rnd.id
        assert closed.status == "closed"
        assert closed.closed_at == NOW + 10
        assert not hasattr(closed, "close")


class TestTransactions:
    @pytest.mark.asyncio
    async def test_access_outside_transaction_rejected(self, test_db: CouncilDatabase):
        with pytest.raises(RuntimeError):
            await test_db.get_agent("nobody")

    @pytest.mark.asyncio
    async def test_commit(self, test_db: CouncilDatabase):
        agent = _agent("alice")
        async with test_db.transaction():
            await test_db.insert_agent(agent)
        async with test_db.transaction():
            fetched = await test_db.get_agent(agent.id)
        assert fetched is not None
        assert fetched.name == "alice"
        assert fetched.claimed is True

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, test_db: CouncilDatabase):
        agent = _agent("bob")
        with pytest.raises(ValueError):
            async with test_db.transaction():
                await test_db.insert_agent(agent)
                raise ValueError("boom")
        async with test_db.transaction():
            assert await test_db.get_agent(agent.id) is None

    @pytest.mark.asyncio
    async def test_nested_transaction_joins_outer(self, test_db: CouncilDatabase):
        agent = _agent("carol")
        with pytest.raises(ValueError):
            async with test_db.transaction():
                async with test_db.transaction():
                    await test_db.insert_agent(agent)
                raise ValueError("outer fails after inner finished")
        async with test_db.transaction():
            assert await test_db.get_agent(agent.id) is None

    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self, test_db: CouncilDatabase):
        agent = _agent("dave")
        with pytest.raises(StoreError):
            async with test_db.transaction():
                await test_db.insert_agent(agent)
                await test_db.insert_agent(agent)

    @pytest.mark.asyncio
    async def test_concurrent_transactions_serialize(self, test_db: CouncilDatabase):
        agent = _agent("erin")
        async with test_db.transaction():
            await test_db.insert_agent(agent)

        async def bump() -> None:
            async with test_db.transaction():
                score = await test_db.get_score(agent.id)
                await asyncio.sleep(0)
                await test_db.adjust_score(agent.id, 1)
                assert await test_db.get_score(agent.id) == score + 1

        await asyncio.gather(*(bump() for _ in range(20)))
        async with test_db.transaction():
            assert await test_db.get_score(agent.id) == 20


class TestRounds:
    @pytest.mark.asyncio
    async def test_only_one_open_round_allowed(self, test_db: CouncilDatabase):
        async with test_db.transaction():
            await test_db.insert_round(_open_round())
        with pytest.raises(StoreError):
            async with test_db.transaction():
                await test_db.insert_round(_open_round())
        async with test_db.transaction():
            assert await test_db.count_rounds("open") == 1

    @pytest.mark.asyncio
    async def test_mark_closed_is_compare_and_swap(self, test_db: CouncilDatabase):
        rnd = _open_round()
        async with test_db.transaction():
            await test_db.insert_round(rnd)
            closed = rnd.close(VoteChoice.NO, NOW + 5)
            assert await test_db.mark_round_closed(closed) is True
            assert await test_db.mark_round_closed(closed) is False
            fetched = await test_db.get_round(rnd.id)
        assert isinstance(fetched, ClosedRound)
        assert fetched.outcome == VoteChoice.NO

    @pytest.mark.asyncio
    async def test_list_expired(self, test_db: CouncilDatabase):
        rnd = _open_round()
        async with test_db.transaction():
            await test_db.insert_round(rnd)
            assert await test_db.list_expired_round_ids(rnd.closes_at - 1) == []
            assert await test_db.list_expired_round_ids(rnd.closes_at) == [rnd.id]


class TestFeed:
    @pytest.mark.asyncio
    async def test_newest_first_with_insertion_order_ties(self, test_db: CouncilDatabase):
        async with test_db.transaction():
            for i in range(3):
                await test_db.append_feed(
                    FeedEntryRecord(
                        id=str(uuid.uuid4()),
                        type=FeedType.SYSTEM,
                        message=f"entry {i}",
                        created_at=NOW,
                    )
                )
            await test_db.append_feed(
                FeedEntryRecord(
                    id=str(uuid.uuid4()),
                    type=FeedType.CLOSE,
                    message="later",
                    created_at=NOW + 1,
                )
            )
            entries = await test_db.list_feed(10)
        assert [e.message for e in entries] == ["later", "entry 2", "entry 1", "entry 0"]
        assert entries[0].type == FeedType.CLOSE
