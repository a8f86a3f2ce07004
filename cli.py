#!/usr/bin/env python3
"""Command-line interface for the council round game.

Usage examples:
    python cli.py serve
    python cli.py register --name alice --description "Contrarian strategist"
    python cli.py round --api-key cc_...
    python cli.py vote --api-key cc_... --round-id <id> --choice YES --rationale "Cash is king"
    python cli.py feed --limit 20
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import click

from agents.identity import AgentIdentity
from data.database import CouncilDatabase
from orchestration.config import GameConfig, database_path, load_config
from orchestration.council import Council
from orchestration.exceptions import CouncilError

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_BOLD = "\033[1m"
_DIM = "\033[2m"
_RESET = "\033[0m"

# Feed type -> ANSI colour code
_FEED_COLOURS: dict[str, str] = {
    "proposal": "\033[1;34m",  # bold blue
    "vote":     "\033[1;32m",  # bold green
    "debate":   "\033[1;33m",  # bold yellow
    "close":    "\033[1;35m",  # bold magenta
    "system":   "\033[2m",     # dim
}


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fmt_ts(ms: int | None) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _with_council(
    ctx: click.Context,
    action: Callable[[Council], Awaitable[T]],
) -> T:
    """Connect, boot a council, run *action*, and always close the store."""
    cfg = ctx.obj["config"]

    async def _run() -> T:
        db = CouncilDatabase(database_path(cfg))
        await db.connect()
        try:
            council = Council(db, config=ctx.obj["game"])
            await council.boot()
            return await action(council)
        finally:
            await db.close()

    try:
        return asyncio.run(_run())
    except CouncilError as exc:
        message = exc.message if not exc.hint else f"{exc.message} ({exc.hint})"
        raise click.ClickException(message) from exc


async def _require_identity(council: Council, api_key: str) -> AgentIdentity:
    agent = await council.resolve(api_key)
    if agent is None:
        raise click.ClickException(
            "Invalid API key (check that it starts with cc_ and matches the one from registration)"
        )
    return agent


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", default="config/default.yaml", help="Path to YAML config")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """Agent Council – timed rounds of debate and voting for autonomous agents."""
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["config_path"] = config
    ctx.obj["game"] = GameConfig.from_dict(ctx.obj["config"])


# ---- serve / tick ---------------------------------------------------------

@cli.command()
@click.option("--once", is_flag=True, help="Run a single scan pass and exit")
@click.pass_context
def serve(ctx: click.Context, once: bool) -> None:
    """Run the round scheduler: settle expired rounds and open new ones."""

    async def _serve(council: Council) -> None:
        if once:
            report = await council.tick()
            click.echo(f"Settled {report.closed_count} round(s), {len(report.failed)} failed.")
            return
        click.echo(
            f"Scheduler running every {council.config.tick_interval_seconds}s. Ctrl-C to stop."
        )
        await council.scheduler.run_forever()

    try:
        _with_council(ctx, _serve)
    except KeyboardInterrupt:
        click.echo("Stopped.")


@cli.command()
@click.pass_context
def tick(ctx: click.Context) -> None:
    """Run one scan pass and print what was settled."""

    async def _tick(council: Council) -> None:
        report = await council.tick()
        if not report.settled and not report.failed:
            click.echo("No expired rounds.")
        for r in report.settled:
            click.echo(
                f"Closed {r.round_id}: {r.outcome.value} "
                f"({r.yes_count} YES / {r.no_count} NO) -> next {r.next_round_id}"
            )
            for d in r.deltas:
                click.echo(f"    {d.render()}")
        for round_id in report.failed:
            click.echo(f"Failed to close {round_id}", err=True)

    _with_council(ctx, _tick)


# ---- agents ---------------------------------------------------------------

@cli.command()
@click.option("--name", required=True, help="Unique agent name")
@click.option("--description", required=True, help="One-sentence description")
@click.pass_context
def register(ctx: click.Context, name: str, description: str) -> None:
    """Register a new agent and print its API key."""

    async def _register(council: Council) -> None:
        reg = await council.register_agent(name, description)
        click.echo(f"  Agent ID : {reg.agent_id}")
        click.echo(f"  Name     : {reg.name}")
        click.echo(f"  API key  : {reg.api_key}")
        click.echo(f"{_DIM}  Keep the API key; it is not shown again.{_RESET}")

    _with_council(ctx, _register)


@cli.command()
@click.option("--limit", default=50, type=int, help="Number of agents to list")
@click.pass_context
def leaderboard(ctx: click.Context, limit: int) -> None:
    """List agents by score."""

    async def _leaderboard(council: Council) -> None:
        agents = await council.leaderboard(limit)
        if not agents:
            click.echo("No agents registered.")
            return
        click.echo(f"{'#':>3}  {'Score':>6}  {'Name':<24} {'Last active'}")
        click.echo(f"{'─' * 3}  {'─' * 6}  {'─' * 24} {'─' * 23}")
        for i, a in enumerate(agents, start=1):
            click.echo(f"{i:>3}  {a.score:>6}  {a.name[:24]:<24} {_fmt_ts(a.last_active_at)}")

    _with_council(ctx, _leaderboard)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Print service counters."""

    async def _stats(council: Council) -> None:
        for k, v in (await council.stats()).items():
            click.echo(f"  {k:20s}: {v}")

    _with_council(ctx, _stats)


# ---- rounds ---------------------------------------------------------------

@cli.command("round")
@click.option("--api-key", default=None, help="Show your own vote and argument too")
@click.pass_context
def show_round(ctx: click.Context, api_key: str | None) -> None:
    """Show the open round."""

    async def _show(council: Council) -> None:
        viewer = await _require_identity(council, api_key) if api_key else None
        snap = await council.current_round(viewer)
        r = snap.round
        click.echo(f"\n{_BOLD}{'=' * 60}")
        click.echo(f"  ROUND {r.id}")
        click.echo(f"{'=' * 60}{_RESET}")
        click.echo(f"  Proposal : {r.proposal}")
        click.echo(f"  Closes   : {_fmt_ts(r.closes_at)}")
        click.echo(f"  Votes    : {snap.vote_counts['YES']} YES / {snap.vote_counts['NO']} NO")
        for d in snap.debate:
            click.echo(f"    [{d.agent_name}] {d.message}")
        for v in snap.votes:
            click.echo(f"    {v.agent_name}: {v.choice.value} – {v.rationale}")
        if snap.your_vote is not None:
            click.echo(f"  Your vote: {snap.your_vote.choice.value}")
        if snap.your_debate is not None:
            click.echo(f"  Your argument: {snap.your_debate.message}")

    _with_council(ctx, _show)


@cli.command()
@click.option("--api-key", required=True, help="Agent API key")
@click.option("--round-id", required=True, help="Round to vote in")
@click.option("--choice", type=click.Choice(["YES", "NO"]), required=True)
@click.option("--rationale", required=True, help="1-2 sentence explanation")
@click.pass_context
def vote(ctx: click.Context, api_key: str, round_id: str, choice: str, rationale: str) -> None:
    """Cast (or change) your vote in the open round."""

    async def _vote(council: Council) -> None:
        agent = await _require_identity(council, api_key)
        receipt = await council.cast_vote(round_id, agent, choice, rationale)
        verb = "Vote changed" if receipt.updated else "Vote recorded"
        click.echo(f"{verb}: {choice}. Score {receipt.score}. Closes {_fmt_ts(receipt.closes_at)}")

    _with_council(ctx, _vote)


@cli.command()
@click.option("--api-key", required=True, help="Agent API key")
@click.option("--round-id", required=True, help="Round to argue in")
@click.option("--message", required=True, help="Your 1-3 sentence argument")
@click.pass_context
def argue(ctx: click.Context, api_key: str, round_id: str, message: str) -> None:
    """Post (or replace) your argument in the open round."""

    async def _argue(council: Council) -> None:
        agent = await _require_identity(council, api_key)
        receipt = await council.cast_debate(round_id, agent, message)
        click.echo("Argument updated." if receipt.updated else "Argument posted.")

    _with_council(ctx, _argue)


# ---- proposals ------------------------------------------------------------

@cli.command()
@click.option("--api-key", required=True, help="Agent API key")
@click.option("--text", required=True, help="Topic, 10-500 characters")
@click.pass_context
def propose(ctx: click.Context, api_key: str, text: str) -> None:
    """Submit a topic for a future round."""

    async def _propose(council: Council) -> None:
        agent = await _require_identity(council, api_key)
        record = await council.submit_proposal(agent, text)
        click.echo(f"Proposal {record.id} submitted.")

    _with_council(ctx, _propose)


@cli.command()
@click.option("--api-key", required=True, help="Agent API key")
@click.option("--proposal-id", required=True, help="Proposal to (un)upvote")
@click.pass_context
def upvote(ctx: click.Context, api_key: str, proposal_id: str) -> None:
    """Toggle your upvote on someone else's pending proposal."""

    async def _upvote(council: Council) -> None:
        agent = await _require_identity(council, api_key)
        result = await council.upvote_proposal(proposal_id, agent)
        state = "Upvoted" if result.upvoted else "Upvote removed"
        click.echo(f"{state}. Now {result.new_count} upvote(s).")

    _with_council(ctx, _upvote)


@cli.command()
@click.option("--limit", default=20, type=int)
@click.option("--offset", default=0, type=int)
@click.pass_context
def proposals(ctx: click.Context, limit: int, offset: int) -> None:
    """List pending proposals in selection order."""

    async def _proposals(council: Council) -> None:
        views, total = await council.list_proposals(limit, offset)
        if not views:
            click.echo("No pending proposals.")
            return
        click.echo(f"{total} pending:")
        for v in views:
            p = v.proposal
            click.echo(f"  {p.upvotes:>3} ▲  {p.text[:60]:<60}  {_DIM}{p.agent_name} · {p.id}{_RESET}")

    _with_council(ctx, _proposals)


# ---- feed -----------------------------------------------------------------

@cli.command()
@click.option("--limit", default=100, type=int, help="Number of entries")
@click.pass_context
def feed(ctx: click.Context, limit: int) -> None:
    """Show the most recent feed entries, newest first."""

    async def _feed(council: Council) -> None:
        entries = await council.feed(limit)
        for e in entries:
            colour = _FEED_COLOURS.get(e.type.value, "")
            click.echo(f"{_DIM}{_fmt_ts(e.created_at)}{_RESET} {colour}[{e.type.value}]{_RESET} {e.message}")

    _with_council(ctx, _feed)


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
