"""Pytest configuration and shared fixtures for the competition engine tests."""

from __future__ import annotations

import pytest
import pytest_asyncio

from typing import TYPE_CHECKING, Any

from sqlalchemy.pool import StaticPool

from bitmemes.chain.models import BlockInfo
from bitmemes.competition.db import InscriptionDB, ProposalDB
from bitmemes.competition.monitor import OrderMonitor
from bitmemes.competition.scheduler import CompetitionScheduler
from bitmemes.competition.store import CompetitionStore
from bitmemes.helpers.config import CompetitionSettings
from bitmemes.helpers.db import Base, create_session_factory
from bitmemes.launch.notifier import LaunchNotifier
from bitmemes.orders.models import OrderCreated, OrderStatus


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from bitmemes.competition.models import Proposal
    from bitmemes.orders.models import InscriptionPayload


RECEIVE_ADDRESS = "tb1qreceiveaddress000000000000000000000000"


def block_hash_for(height: int) -> str:
    return f"{height:064x}"


class FakeChain:
    """In-memory chain height source."""

    def __init__(self, height: int = 100) -> None:
        self.height = height
        self.failing_heights: set[int] = set()
        self.height_error: Exception | None = None
        self.looked_up: list[int] = []

    async def current_height(self) -> int:
        if self.height_error is not None:
            raise self.height_error
        return self.height

    async def block_at(self, height: int) -> BlockInfo:
        self.looked_up.append(height)
        if height in self.failing_heights:
            msg = f"block {height} unavailable"
            raise RuntimeError(msg)
        return BlockInfo(id=block_hash_for(height), height=height, timestamp=1_700_000_000)


class FakeProvider:
    """In-memory commit provider."""

    def __init__(self) -> None:
        self.created: list[tuple[InscriptionPayload, str]] = []
        self.create_error: Exception | None = None
        self.statuses: dict[str, OrderStatus | Exception] = {}
        self.status_calls: list[str] = []

    async def create_order(
        self, payload: InscriptionPayload, receive_address: str
    ) -> OrderCreated:
        if self.create_error is not None:
            raise self.create_error
        self.created.append((payload, receive_address))
        return OrderCreated(
            order_id=f"order-{len(self.created)}",
            pay_address="tb1qpayaddress",
            amount=12_000,
        )

    async def get_order_status(self, order_id: str) -> OrderStatus:
        self.status_calls.append(order_id)
        result = self.statuses[order_id]
        if isinstance(result, Exception):
            raise result
        return result

    def set_status(
        self,
        order_id: str,
        status: str,
        inscription_id: str | None = None,
        txid: str | None = None,
    ) -> None:
        files: list[dict[str, Any]] = []
        if inscription_id or txid:
            files.append({"inscriptionId": inscription_id, "txid": txid})
        self.statuses[order_id] = OrderStatus.model_validate(
            {"orderId": order_id, "status": status, "files": files}
        )


class RecordingNotifier(LaunchNotifier):
    """Launch notifier that remembers what it was told."""

    def __init__(self, error: Exception | None = None) -> None:
        self.notified: list[Proposal] = []
        self.error = error

    async def notify_leadership_complete(self, proposal: Proposal) -> None:
        self.notified.append(proposal)
        if self.error is not None:
            raise self.error


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """In-memory SQLite database with every table created."""
    engine, factory = create_session_factory(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory: async_sessionmaker[AsyncSession]) -> CompetitionStore:
    return CompetitionStore(session_factory)


@pytest.fixture
def settings() -> CompetitionSettings:
    return CompetitionSettings(
        order_poll_delay=0,
        expire_after_blocks=5,
        leaderboard_min_blocks=2,
        leadership_window_blocks=5,
        min_votes_to_lead=1,
        stuck_order_timeout=3600,
        receive_address=RECEIVE_ADDRESS,
    )


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scheduler(
    store: CompetitionStore,
    chain: FakeChain,
    provider: FakeProvider,
    notifier: RecordingNotifier,
    settings: CompetitionSettings,
) -> CompetitionScheduler:
    return CompetitionScheduler(store, chain, provider, notifier, settings)  # type: ignore[arg-type]


@pytest.fixture
def monitor(
    store: CompetitionStore,
    provider: FakeProvider,
    settings: CompetitionSettings,
) -> OrderMonitor:
    return OrderMonitor(store, provider, settings)  # type: ignore[arg-type]


@pytest.fixture
def add_proposal(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Insert a proposal row and return its id."""
    counter = 0

    async def _add(**fields: Any) -> int:
        nonlocal counter
        counter += 1
        values: dict[str, Any] = {
            "name": f"Meme {counter}",
            "ticker": f"MEME{counter}",
            "description": "A coin for the culture",
            "total_votes": 0,
            "status": "active",
            "creation_block": 100,
        }
        values.update(fields)
        async with session_factory() as session:
            row = ProposalDB(**values)
            session.add(row)
            await session.commit()
            return row.id

    return _add


@pytest.fixture
def add_inscription(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Insert an inscription row and return its id."""

    async def _add(proposal_id: int, **fields: Any) -> int:
        values: dict[str, Any] = {
            "proposal_id": proposal_id,
            "block_height": 100,
            "block_hash": block_hash_for(100),
            "order_id": f"order-for-{proposal_id}",
            "order_status": "pending",
        }
        values.update(fields)
        async with session_factory() as session:
            row = InscriptionDB(**values)
            session.add(row)
            await session.commit()
            return row.id

    return _add
