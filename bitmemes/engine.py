"""Competition engine: runs the scheduler and the order monitor side by side.

Both services are built once at startup and share nothing but the store.
Each runs on its own periodic timer; a tick that overruns its interval turns
the next firing into a no-op.

Usage:
    python -m bitmemes.engine
"""

from __future__ import annotations

import asyncio
import signal
import sys

from typing import TYPE_CHECKING

from bitmemes.chain.esplora import EsploraClient
from bitmemes.competition.monitor import OrderMonitor
from bitmemes.competition.scheduler import CompetitionScheduler
from bitmemes.competition.store import CompetitionStore
from bitmemes.helpers.config import CompetitionSettings
from bitmemes.helpers.db import create_session_factory
from bitmemes.helpers.http import create_http_client
from bitmemes.helpers.logging import get_logger
from bitmemes.helpers.ticker import PeriodicTask
from bitmemes.launch.notifier import notifier_from_env
from bitmemes.orders.unisat import UnisatClient


if TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncEngine


logger = get_logger(__name__)


class CompetitionEngine:
    """Owns the shared resources and the two periodic services."""

    def __init__(
        self,
        scheduler: CompetitionScheduler,
        monitor: OrderMonitor,
        settings: CompetitionSettings,
        http_client: httpx.AsyncClient,
        db_engine: AsyncEngine,
    ) -> None:
        self.scheduler = scheduler
        self.monitor = monitor
        self.settings = settings
        self.http_client = http_client
        self.db_engine = db_engine

        self.block_timer = PeriodicTask(
            "competition-scheduler", settings.block_poll_interval, scheduler.tick
        )
        self.order_timer = PeriodicTask(
            "order-monitor", settings.order_poll_interval, monitor.tick
        )
        self._shutdown = asyncio.Event()

    def shutdown(self) -> None:
        """Gracefully shutdown the engine."""
        logger.info("Shutdown signal received, stopping...")
        self._shutdown.set()

    async def cleanup(self) -> None:
        """Stop the timers and release shared resources."""
        await self.block_timer.stop()
        await self.order_timer.stop()
        await self.scheduler.wait_for_notifications()
        await self.http_client.aclose()
        await self.db_engine.dispose()

    async def run(self) -> None:
        """Run both services until SIGINT or SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            self.block_timer.start()
            self.order_timer.start()
            await self._shutdown.wait()
        finally:
            await self.cleanup()

        logger.info("Competition engine stopped")


def build_engine(
    settings: CompetitionSettings | None = None,
    database_url: str | None = None,
) -> CompetitionEngine:
    """Wire every service from the environment.

    Raises:
        ValueError: If required environment variables are not set
    """
    settings = settings or CompetitionSettings.from_env()
    http_client = create_http_client()
    db_engine, session_factory = create_session_factory(database_url)

    store = CompetitionStore(session_factory)
    provider = UnisatClient.from_env(
        http_client,
        fee_rate=settings.fee_rate,
        max_retries=settings.provider_max_retries,
        base_delay=settings.provider_backoff_base,
    )
    scheduler = CompetitionScheduler(
        store,
        EsploraClient.from_env(http_client),
        provider,
        notifier_from_env(http_client),
        settings,
    )
    monitor = OrderMonitor(store, provider, settings)

    if not settings.receive_address:
        logger.warning(
            "UNISAT_RECEIVE_ADDRESS is not set, winning proposals cannot be inscribed"
        )

    return CompetitionEngine(scheduler, monitor, settings, http_client, db_engine)


async def main() -> None:
    """Main entry point."""
    try:
        engine = build_engine()
        await engine.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
