"""Command line for operating the competition engine.

Usage:
    bitmemes run
    bitmemes status
    bitmemes eliminate 42 --reason "duplicate ticker"
"""

from __future__ import annotations

import asyncio
import sys

from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.table import Table

from bitmemes.competition.store import ProposalNotFoundError
from bitmemes.engine import build_engine, main as run_engine
from bitmemes.helpers.db import create_session_factory, create_tables


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from bitmemes.competition.models import SchedulerStatus
    from bitmemes.engine import CompetitionEngine


console = Console()


def _run_with_engine(operation: Callable[[CompetitionEngine], Awaitable[None]]) -> None:
    """Build the engine, run one operation against it and release resources."""

    async def _run() -> None:
        engine = build_engine()
        try:
            await operation(engine)
        finally:
            await engine.cleanup()

    try:
        asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        sys.exit(1)


def render_status(status: SchedulerStatus) -> Table:
    table = Table(title="Competition Scheduler")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Running", "yes" if status.is_running else "no")
    table.add_row("Chain tip", str(status.current_block))
    table.add_row("Last processed", str(status.last_processed_block))
    table.add_row("Blocks behind", str(status.blocks_behind))
    table.add_row(
        "Last checked",
        status.last_checked.strftime("%Y-%m-%d %H:%M:%S") if status.last_checked else "Never",
    )
    if status.error:
        table.add_row("Error", f"[red]{status.error}[/red]")

    stats = status.competition
    if stats is not None:
        table.add_row("Active", str(stats.total_active))
        table.add_row("Leaders", str(stats.current_leaders))
        table.add_row("Inscribing", str(stats.currently_inscribing))
        table.add_row("Expired", str(stats.total_expired))
        table.add_row("Inscribed", str(stats.total_inscribed))
        top = stats.top_proposal
        if top is not None:
            table.add_row(
                "Top proposal",
                f"#{top.id} {top.ticker} ({top.votes} votes, {top.status}, "
                f"{top.blocks_as_leader} block(s) as leader)",
            )
    return table


@click.group()
def cli() -> None:
    """BitMemes competition engine."""


@cli.command()
def run() -> None:
    """Run the scheduler and the order monitor until interrupted."""
    asyncio.run(run_engine())


@cli.command()
def status() -> None:
    """Show scheduler status and competition stats."""

    async def _status(engine: CompetitionEngine) -> None:
        console.print(render_status(await engine.scheduler.status()))
        monitor = engine.monitor.status()
        console.print(
            f"[bold]Order monitor:[/bold] running={monitor.is_running} "
            f"last_checked={monitor.last_checked or 'never'}"
        )

    _run_with_engine(_status)


@cli.command()
def trigger() -> None:
    """Run one scheduler tick now."""

    async def _trigger(engine: CompetitionEngine) -> None:
        if await engine.scheduler.trigger_manually():
            console.print("[green]✓[/green] Scheduler tick completed")
        else:
            console.print("[yellow]Scheduler tick already in progress[/yellow]")

    _run_with_engine(_trigger)


@cli.command()
def monitor() -> None:
    """Run one order reconciliation cycle now."""

    async def _monitor(engine: CompetitionEngine) -> None:
        summary = await engine.monitor.check_all_pending_orders()
        if not summary:
            console.print("No open orders.")
            return
        for outcome, count in sorted(summary.items()):
            console.print(f"  [bold]{outcome}:[/bold] {count}")

    _run_with_engine(_monitor)


@cli.command()
@click.argument("proposal_id", type=int)
@click.option("--reason", default="", help="Why the proposal is eliminated")
def eliminate(proposal_id: int, reason: str) -> None:
    """Force-expire a proposal."""

    async def _eliminate(engine: CompetitionEngine) -> None:
        try:
            proposal = await engine.scheduler.force_expire_proposal(proposal_id, reason)
        except ProposalNotFoundError as e:
            console.print(f"[red]ERROR:[/red] {e}")
            return
        console.print(
            f"[green]✓[/green] Proposal #{proposal.id} ({proposal.ticker}) eliminated"
        )

    _run_with_engine(_eliminate)


@cli.command()
@click.option("--reason", default="", help="Why the competition is reset")
@click.confirmation_option(prompt="Reset every leader and expired proposal to active?")
def reset(reason: str) -> None:
    """Return leaders and expired proposals to active."""

    async def _reset(engine: CompetitionEngine) -> None:
        count = await engine.scheduler.reset_competition(reason)
        console.print(f"[green]✓[/green] {count} proposal(s) reset")

    _run_with_engine(_reset)


@cli.command(name="init-db")
def init_db() -> None:
    """Create the competition tables."""

    async def _init() -> None:
        engine, _ = create_session_factory()
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()

    try:
        asyncio.run(_init())
    except ValueError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        sys.exit(1)
    console.print("[green]✓[/green] Tables created")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
