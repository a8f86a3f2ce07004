"""Background timer that settles expired rounds and keeps one round open."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from data.database import CouncilDatabase
from orchestration.clock import Clock
from orchestration.rounds import RoundStateMachine
from orchestration.settlement import SettlementEngine, SettlementResult

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Outcome of one scheduler pass."""

    settled: list[SettlementResult] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    opened_round_id: str | None = None

    @property
    def closed_count(self) -> int:
        return len(self.settled)


class RoundScheduler:
    """Periodic scan for rounds whose ``closes_at`` has passed.

    Each expired round is settled in its own transaction.  A failure is
    logged with the round id and the scan moves on to the next round;
    the failed round stays open and is retried on the next tick.
    """

    def __init__(
        self,
        db: CouncilDatabase,
        clock: Clock,
        rounds: RoundStateMachine,
        settlement: SettlementEngine,
        interval_seconds: float = 30,
    ) -> None:
        self.db = db
        self.clock = clock
        self.rounds = rounds
        self.settlement = settlement
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    # ------------------------------------------------------------------
    # Single pass
    # ------------------------------------------------------------------

    async def scan_once(self) -> ScanReport:
        report = ScanReport()

        async with self.db.transaction():
            expired = await self.db.list_expired_round_ids(self.clock.now())

        for round_id in expired:
            try:
                result = await self.settlement.close_round(round_id)
            except Exception:
                logger.exception("Error auto-closing round %s", round_id)
                report.failed.append(round_id)
                continue
            if result is not None:
                report.settled.append(result)

        # Self-heal: the very first boot, or a round that failed to settle
        # before the next one could be opened.
        try:
            opened = await self.rounds.ensure_open_round()
        except Exception:
            logger.exception("Error opening a new round")
        else:
            if opened is not None:
                report.opened_round_id = opened.id

        if report.settled or report.failed:
            logger.info(
                "Scan complete: %d settled, %d failed", len(report.settled), len(report.failed)
            )
        return report

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def run_forever(self) -> None:
        """Scan every ``interval_seconds`` until ``stop()`` is called."""
        logger.info("Round scheduler started (every %ss)", self.interval_seconds)
        while not self._stopping.is_set():
            try:
                await self.scan_once()
            except Exception:
                logger.exception("Round scan failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Round scheduler stopped")

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self.run_forever(), name="round-scheduler")
        return self._task

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
