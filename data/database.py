"""Async SQLite store using aiosqlite.

Handles schema creation, serialized transactions and every query the
council core runs against agents, rounds, votes, debate entries,
proposals and the feed.

All queries run inside ``CouncilDatabase.transaction()``.  Transactions
are serialized on the shared connection with an ``asyncio.Lock`` and are
reentrant for the task that already holds one, so a settlement can open
the next round inside its own transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from data.models import (
    AgentRecord,
    ClosedRound,
    DebateEntryRecord,
    FeedEntryRecord,
    OpenRound,
    ProposalRecord,
    ProposalStatus,
    VoteRecord,
    round_from_row,
)
from orchestration.exceptions import StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS agents (
    id             TEXT    PRIMARY KEY,
    name           TEXT    NOT NULL UNIQUE,
    description    TEXT    NOT NULL DEFAULT '',
    api_key        TEXT    NOT NULL UNIQUE,
    claimed        INTEGER NOT NULL DEFAULT 1,
    score          INTEGER NOT NULL DEFAULT 0,
    created_at     INTEGER NOT NULL,
    last_active_at INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS rounds (
    id          TEXT    PRIMARY KEY,
    proposal    TEXT    NOT NULL,
    status      TEXT    NOT NULL CHECK (status IN ('open', 'closed')),
    outcome     TEXT    CHECK (outcome IN ('YES', 'NO')),
    created_at  INTEGER NOT NULL,
    closes_at   INTEGER NOT NULL,
    closed_at   INTEGER,
    proposed_by TEXT    REFERENCES agents(id)
);

-- At most one open round, enforced by the store itself.
CREATE UNIQUE INDEX IF NOT EXISTS idx_rounds_single_open
    ON rounds(status) WHERE status = 'open';
CREATE INDEX IF NOT EXISTS idx_rounds_created ON rounds(created_at DESC);

CREATE TABLE IF NOT EXISTS votes (
    id         TEXT    PRIMARY KEY,
    round_id   TEXT    NOT NULL REFERENCES rounds(id),
    agent_id   TEXT    NOT NULL REFERENCES agents(id),
    choice     TEXT    NOT NULL CHECK (choice IN ('YES', 'NO')),
    rationale  TEXT    NOT NULL,
    created_at INTEGER NOT NULL,
    UNIQUE (round_id, agent_id)
);

CREATE TABLE IF NOT EXISTS debates (
    id         TEXT    PRIMARY KEY,
    round_id   TEXT    NOT NULL REFERENCES rounds(id),
    agent_id   TEXT    NOT NULL REFERENCES agents(id),
    message    TEXT    NOT NULL,
    created_at INTEGER NOT NULL,
    UNIQUE (round_id, agent_id)
);

CREATE TABLE IF NOT EXISTS proposals (
    id         TEXT    PRIMARY KEY,
    agent_id   TEXT    NOT NULL REFERENCES agents(id),
    text       TEXT    NOT NULL,
    upvotes    INTEGER NOT NULL DEFAULT 0,
    status     TEXT    NOT NULL DEFAULT 'pending',
    created_at INTEGER NOT NULL,
    UNIQUE (agent_id, text)
);

CREATE TABLE IF NOT EXISTS proposal_votes (
    id          TEXT    PRIMARY KEY,
    proposal_id TEXT    NOT NULL REFERENCES proposals(id),
    agent_id    TEXT    NOT NULL REFERENCES agents(id),
    created_at  INTEGER NOT NULL,
    UNIQUE (proposal_id, agent_id)
);

CREATE TABLE IF NOT EXISTS feed (
    id         TEXT    PRIMARY KEY,
    type       TEXT    NOT NULL,
    round_id   TEXT,
    agent_id   TEXT,
    message    TEXT    NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_feed_created ON feed(created_at DESC);
"""


class CouncilDatabase:
    """Async wrapper around an SQLite database for council state."""

    def __init__(self, db_path: str | Path = "data/council.db") -> None:
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open connection and ensure schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are explicit BEGIN/COMMIT below.
        self._conn = await aiosqlite.connect(str(self.db_path), isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode = WAL")
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.executescript(_SCHEMA)
        logger.info("Database connected: %s", self.db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        if self._owner is None or self._owner is not asyncio.current_task():
            raise RuntimeError("Store accessed outside a transaction.")
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._owner is not None and self._owner is asyncio.current_task()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CouncilDatabase]:
        """Run the enclosed statements as one atomic unit.

        Nested use from the task that already holds the transaction joins
        it; the outermost block commits or rolls back.
        """
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        if self.in_transaction:
            yield self
            return

        async with self._lock:
            self._owner = asyncio.current_task()
            try:
                await self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self
                except BaseException:
                    await self._conn.execute("ROLLBACK")
                    raise
                await self._conn.execute("COMMIT")
            except aiosqlite.Error as exc:
                if self._conn.in_transaction:
                    await self._conn.execute("ROLLBACK")
                logger.error("Transaction aborted: %s", exc)
                raise StoreError("Store unavailable, nothing was changed") from exc
            finally:
                self._owner = None

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def insert_agent(self, record: AgentRecord) -> None:
        await self.conn.execute(
            "INSERT INTO agents "
            "(id, name, description, api_key, claimed, score, created_at, last_active_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.name,
                record.description,
                record.api_key,
                int(record.claimed),
                record.score,
                record.created_at,
                record.last_active_at,
            ),
        )

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        cur = await self.conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,))
        row = await cur.fetchone()
        return AgentRecord(**dict(row)) if row else None

    async def get_agent_by_api_key(self, api_key: str) -> AgentRecord | None:
        cur = await self.conn.execute("SELECT * FROM agents WHERE api_key = ?", (api_key,))
        row = await cur.fetchone()
        return AgentRecord(**dict(row)) if row else None

    async def touch_agent(self, agent_id: str, now: int, min_interval_ms: int) -> bool:
        cur = await self.conn.execute(
            "UPDATE agents SET last_active_at = ? WHERE id = ? AND last_active_at < ?",
            (now, agent_id, now - min_interval_ms),
        )
        return cur.rowcount > 0

    async def adjust_score(self, agent_id: str, delta: int) -> None:
        """Apply a score delta in the store so concurrent deltas commute."""
        await self.conn.execute(
            "UPDATE agents SET score = score + ? WHERE id = ?", (delta, agent_id)
        )

    async def get_score(self, agent_id: str) -> int | None:
        cur = await self.conn.execute("SELECT score FROM agents WHERE id = ?", (agent_id,))
        row = await cur.fetchone()
        return row["score"] if row else None

    async def leaderboard(self, limit: int) -> list[AgentRecord]:
        cur = await self.conn.execute(
            "SELECT * FROM agents ORDER BY score DESC, created_at ASC LIMIT ?", (limit,)
        )
        return [AgentRecord(**dict(r)) for r in await cur.fetchall()]

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def insert_round(self, record: OpenRound) -> None:
        await self.conn.execute(
            "INSERT INTO rounds (id, proposal, status, created_at, closes_at, proposed_by) "
            "VALUES (?, ?, 'open', ?, ?, ?)",
            (
                record.id,
                record.proposal,
                record.created_at,
                record.closes_at,
                record.proposed_by,
            ),
        )

    async def get_round(self, round_id: str) -> OpenRound | ClosedRound | None:
        cur = await self.conn.execute("SELECT * FROM rounds WHERE id = ?", (round_id,))
        row = await cur.fetchone()
        return round_from_row(dict(row)) if row else None

    async def has_open_round(self) -> bool:
        cur = await self.conn.execute("SELECT id FROM rounds WHERE status = 'open' LIMIT 1")
        return await cur.fetchone() is not None

    async def get_current_round(self) -> OpenRound | None:
        cur = await self.conn.execute(
            "SELECT * FROM rounds WHERE status = 'open' "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1"
        )
        row = await cur.fetchone()
        return round_from_row(dict(row)) if row else None  # type: ignore[return-value]

    async def list_expired_round_ids(self, now: int) -> list[str]:
        cur = await self.conn.execute(
            "SELECT id FROM rounds WHERE status = 'open' AND closes_at <= ? "
            "ORDER BY closes_at",
            (now,),
        )
        return [r["id"] for r in await cur.fetchall()]

    async def mark_round_closed(self, record: ClosedRound) -> bool:
        """Compare-and-swap open -> closed.  False if another caller won."""
        cur = await self.conn.execute(
            "UPDATE rounds SET status = 'closed', outcome = ?, closed_at = ? "
            "WHERE id = ? AND status = 'open'",
            (record.outcome.value, record.closed_at, record.id),
        )
        return cur.rowcount == 1

    async def count_rounds(self, status: str | None = None) -> int:
        if status is None:
            cur = await self.conn.execute("SELECT COUNT(*) AS c FROM rounds")
        else:
            cur = await self.conn.execute(
                "SELECT COUNT(*) AS c FROM rounds WHERE status = ?", (status,)
            )
        row = await cur.fetchone()
        return row["c"]

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    async def get_vote(self, round_id: str, agent_id: str) -> VoteRecord | None:
        cur = await self.conn.execute(
            "SELECT * FROM votes WHERE round_id = ? AND agent_id = ?", (round_id, agent_id)
        )
        row = await cur.fetchone()
        return VoteRecord(**dict(row)) if row else None

    async def insert_vote(self, record: VoteRecord) -> None:
        await self.conn.execute(
            "INSERT INTO votes (id, round_id, agent_id, choice, rationale, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.round_id,
                record.agent_id,
                record.choice.value,
                record.rationale,
                record.created_at,
            ),
        )

    async def update_vote(self, record: VoteRecord) -> None:
        await self.conn.execute(
            "UPDATE votes SET choice = ?, rationale = ?, created_at = ? "
            "WHERE round_id = ? AND agent_id = ?",
            (
                record.choice.value,
                record.rationale,
                record.created_at,
                record.round_id,
                record.agent_id,
            ),
        )

    async def list_votes(self, round_id: str) -> list[VoteRecord]:
        cur = await self.conn.execute(
            "SELECT v.*, a.name AS agent_name FROM votes v "
            "LEFT JOIN agents a ON v.agent_id = a.id "
            "WHERE v.round_id = ? ORDER BY v.created_at, v.rowid",
            (round_id,),
        )
        return [VoteRecord(**dict(r)) for r in await cur.fetchall()]

    # ------------------------------------------------------------------
    # Debate entries
    # ------------------------------------------------------------------

    async def get_debate_entry(self, round_id: str, agent_id: str) -> DebateEntryRecord | None:
        cur = await self.conn.execute(
            "SELECT * FROM debates WHERE round_id = ? AND agent_id = ?", (round_id, agent_id)
        )
        row = await cur.fetchone()
        return DebateEntryRecord(**dict(row)) if row else None

    async def insert_debate_entry(self, record: DebateEntryRecord) -> None:
        await self.conn.execute(
            "INSERT INTO debates (id, round_id, agent_id, message, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (record.id, record.round_id, record.agent_id, record.message, record.created_at),
        )

    async def update_debate_entry(self, record: DebateEntryRecord) -> None:
        await self.conn.execute(
            "UPDATE debates SET message = ?, created_at = ? WHERE round_id = ? AND agent_id = ?",
            (record.message, record.created_at, record.round_id, record.agent_id),
        )

    async def list_debate_entries(self, round_id: str) -> list[DebateEntryRecord]:
        cur = await self.conn.execute(
            "SELECT d.*, a.name AS agent_name FROM debates d "
            "LEFT JOIN agents a ON d.agent_id = a.id "
            "WHERE d.round_id = ? ORDER BY d.created_at, d.rowid",
            (round_id,),
        )
        return [DebateEntryRecord(**dict(r)) for r in await cur.fetchall()]

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def insert_proposal(self, record: ProposalRecord) -> None:
        await self.conn.execute(
            "INSERT INTO proposals (id, agent_id, text, upvotes, status, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.agent_id,
                record.text,
                record.upvotes,
                record.status.value,
                record.created_at,
            ),
        )

    async def get_proposal(self, proposal_id: str) -> ProposalRecord | None:
        cur = await self.conn.execute(
            "SELECT p.*, a.name AS agent_name FROM proposals p "
            "LEFT JOIN agents a ON p.agent_id = a.id WHERE p.id = ?",
            (proposal_id,),
        )
        row = await cur.fetchone()
        return ProposalRecord(**dict(row)) if row else None

    async def count_pending_proposals(self, agent_id: str | None = None) -> int:
        if agent_id is None:
            cur = await self.conn.execute(
                "SELECT COUNT(*) AS c FROM proposals WHERE status = 'pending'"
            )
        else:
            cur = await self.conn.execute(
                "SELECT COUNT(*) AS c FROM proposals WHERE agent_id = ? AND status = 'pending'",
                (agent_id,),
            )
        row = await cur.fetchone()
        return row["c"]

    async def top_qualifying_proposal(self, min_upvotes: int) -> ProposalRecord | None:
        """Most-upvoted pending proposal, earliest first on ties."""
        cur = await self.conn.execute(
            "SELECT p.*, a.name AS agent_name FROM proposals p "
            "JOIN agents a ON p.agent_id = a.id "
            "WHERE p.status = 'pending' AND p.upvotes >= ? "
            "ORDER BY p.upvotes DESC, p.created_at ASC, p.rowid ASC LIMIT 1",
            (min_upvotes,),
        )
        row = await cur.fetchone()
        return ProposalRecord(**dict(row)) if row else None

    async def set_proposal_status(
        self,
        proposal_id: str,
        status: ProposalStatus,
    ) -> bool:
        """Move a pending proposal to a terminal status.  False if it was not pending."""
        cur = await self.conn.execute(
            "UPDATE proposals SET status = ? WHERE id = ? AND status = 'pending'",
            (status.value, proposal_id),
        )
        return cur.rowcount == 1

    async def expire_stale_proposals(self, cutoff: int) -> int:
        cur = await self.conn.execute(
            "UPDATE proposals SET status = 'expired' "
            "WHERE status = 'pending' AND created_at < ?",
            (cutoff,),
        )
        return cur.rowcount

    async def list_pending_proposals(self, limit: int, offset: int = 0) -> list[ProposalRecord]:
        cur = await self.conn.execute(
            "SELECT p.*, a.name AS agent_name FROM proposals p "
            "JOIN agents a ON p.agent_id = a.id WHERE p.status = 'pending' "
            "ORDER BY p.upvotes DESC, p.created_at ASC, p.rowid ASC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [ProposalRecord(**dict(r)) for r in await cur.fetchall()]

    async def has_upvoted(self, proposal_id: str, agent_id: str) -> bool:
        cur = await self.conn.execute(
            "SELECT id FROM proposal_votes WHERE proposal_id = ? AND agent_id = ?",
            (proposal_id, agent_id),
        )
        return await cur.fetchone() is not None

    async def add_upvote(self, upvote_id: str, proposal_id: str, agent_id: str, now: int) -> None:
        await self.conn.execute(
            "INSERT INTO proposal_votes (id, proposal_id, agent_id, created_at) "
            "VALUES (?, ?, ?, ?)",
            (upvote_id, proposal_id, agent_id, now),
        )
        await self.conn.execute(
            "UPDATE proposals SET upvotes = upvotes + 1 WHERE id = ?", (proposal_id,)
        )

    async def remove_upvote(self, proposal_id: str, agent_id: str) -> None:
        await self.conn.execute(
            "DELETE FROM proposal_votes WHERE proposal_id = ? AND agent_id = ?",
            (proposal_id, agent_id),
        )
        await self.conn.execute(
            "UPDATE proposals SET upvotes = upvotes - 1 WHERE id = ?", (proposal_id,)
        )

    async def get_upvotes(self, proposal_id: str) -> int:
        cur = await self.conn.execute(
            "SELECT upvotes FROM proposals WHERE id = ?", (proposal_id,)
        )
        row = await cur.fetchone()
        return row["upvotes"] if row else 0

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    async def append_feed(self, record: FeedEntryRecord) -> None:
        await self.conn.execute(
            "INSERT INTO feed (id, type, round_id, agent_id, message, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.type.value,
                record.round_id,
                record.agent_id,
                record.message,
                record.created_at,
            ),
        )

    async def list_feed(self, limit: int) -> list[FeedEntryRecord]:
        """Newest first; insertion order breaks timestamp ties."""
        cur = await self.conn.execute(
            "SELECT * FROM feed ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
        )
        return [FeedEntryRecord(**dict(r)) for r in await cur.fetchall()]

    # ------------------------------------------------------------------
    # Aggregate helpers
    # ------------------------------------------------------------------

    async def get_stats(self, active_since: int) -> dict[str, Any]:
        """Return headline counters for the whole service."""
        cur = await self.conn.execute(
            "SELECT "
            " (SELECT COUNT(*) FROM agents) AS total_agents, "
            " (SELECT COUNT(*) FROM agents WHERE last_active_at > ?) AS active_agents_24h, "
            " (SELECT COUNT(*) FROM rounds WHERE status = 'closed') AS total_rounds, "
            " (SELECT COUNT(*) FROM debates WHERE created_at > ?) AS debates_today, "
            " (SELECT COUNT(*) FROM proposals WHERE status = 'pending') AS proposals_pending",
            (active_since, active_since),
        )
        row = await cur.fetchone()
        return dict(row)
