"""Competition store: the only shared state between scheduler and monitor.

Every method opens its own session and commits once, so each write is atomic
per record and the two services never hold a transaction open across an
external call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select, update

from bitmemes.competition.db import BlockTrackerDB, InscriptionDB, ProposalDB, utcnow
from bitmemes.competition.models import (
    AdminProposalPatch,
    BlockCursor,
    CONTENDER_STATUSES,
    Inscription,
    MonitorInscriptionPatch,
    NewInscription,
    Proposal,
    ProposalPatch,
    ProposalStatus,
)
from bitmemes.helpers.logging import get_logger
from bitmemes.orders.constants import (
    CLOSED_ORDER_STATUSES,
    FAILED_ORDER_STATUSES,
    ORDER_COMPLETED,
)


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


logger = get_logger(__name__)

TRACKER_ID = 1


class ProposalNotFoundError(Exception):
    """No proposal with the given id."""

    def __init__(self, proposal_id: int) -> None:
        super().__init__(f"Proposal {proposal_id} not found")
        self.proposal_id = proposal_id


class CompetitionStore:
    """Repository over the proposal, inscription and block tracker tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    # Block tracker

    async def get_cursor(self) -> BlockCursor | None:
        async with self.session_factory() as session:
            tracker = await session.get(BlockTrackerDB, TRACKER_ID)
            return BlockCursor.model_validate(tracker) if tracker else None

    async def advance_cursor(self, height: int, block_hash: str | None) -> BlockCursor:
        """Record ``height`` as fully processed.

        The cursor never moves backwards: an older height only refreshes
        ``last_checked``.
        """
        async with self.session_factory() as session:
            tracker = await session.get(BlockTrackerDB, TRACKER_ID)
            if tracker is None:
                tracker = BlockTrackerDB(
                    id=TRACKER_ID,
                    last_processed_block=height,
                    last_processed_hash=block_hash,
                )
                session.add(tracker)
            elif height > tracker.last_processed_block:
                tracker.last_processed_block = height
                tracker.last_processed_hash = block_hash
            else:
                logger.warning(
                    "Ignoring cursor move from %d back to %d",
                    tracker.last_processed_block,
                    height,
                )
            tracker.last_checked = utcnow()
            await session.commit()
            return BlockCursor.model_validate(tracker)

    async def touch_cursor(self) -> None:
        """Refresh ``last_checked`` without moving the cursor."""
        async with self.session_factory() as session:
            await session.execute(
                update(BlockTrackerDB)
                .where(BlockTrackerDB.id == TRACKER_ID)
                .values(last_checked=utcnow())
            )
            await session.commit()

    # Proposals

    async def get_proposal(self, proposal_id: int) -> Proposal | None:
        async with self.session_factory() as session:
            row = await session.get(ProposalDB, proposal_id)
            return Proposal.model_validate(row) if row else None

    async def list_proposals(self, status: ProposalStatus | None = None) -> list[Proposal]:
        async with self.session_factory() as session:
            stmt = select(ProposalDB).order_by(
                ProposalDB.total_votes.desc(), ProposalDB.id.asc()
            )
            if status is not None:
                stmt = stmt.where(ProposalDB.status == status)
            result = await session.execute(stmt)
            return [Proposal.model_validate(row) for row in result.scalars().all()]

    async def update_proposal(self, proposal_id: int, patch: ProposalPatch) -> Proposal:
        """Apply the explicitly set fields of ``patch``.

        Raises:
            ProposalNotFoundError: If the proposal does not exist
        """
        async with self.session_factory() as session:
            row = await session.get(ProposalDB, proposal_id)
            if row is None:
                raise ProposalNotFoundError(proposal_id)
            for column, value in patch.changes().items():
                setattr(row, column, value)
            await session.commit()
            return Proposal.model_validate(row)

    async def expire_stale_active(self, height: int, expire_after_blocks: int) -> list[int]:
        """Expire ``active`` proposals created ``expire_after_blocks`` or more blocks ago.

        Returns:
            Ids of the proposals that were expired
        """
        cutoff = height - expire_after_blocks
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProposalDB.id).where(
                    ProposalDB.status == ProposalStatus.ACTIVE,
                    ProposalDB.creation_block.is_not(None),
                    ProposalDB.creation_block <= cutoff,
                )
            )
            ids = list(result.scalars().all())
            if ids:
                await session.execute(
                    update(ProposalDB)
                    .where(ProposalDB.id.in_(ids))
                    .values(status=ProposalStatus.EXPIRED, expiration_block=height)
                )
                await session.commit()
            return ids

    async def top_contender(self) -> Proposal | None:
        """Highest-voted ``active`` or ``leader`` proposal; lower id wins ties."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProposalDB)
                .where(ProposalDB.status.in_(CONTENDER_STATUSES))
                .order_by(ProposalDB.total_votes.desc(), ProposalDB.id.asc())
                .limit(1)
            )
            row = result.scalars().first()
            return Proposal.model_validate(row) if row else None

    async def expire_other_leaders(self, keep_id: int, height: int) -> list[int]:
        """Expire every ``leader`` except ``keep_id``.

        Returns:
            Ids of the dethroned proposals
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProposalDB.id).where(
                    ProposalDB.status == ProposalStatus.LEADER,
                    ProposalDB.id != keep_id,
                )
            )
            ids = list(result.scalars().all())
            if ids:
                await session.execute(
                    update(ProposalDB)
                    .where(ProposalDB.id.in_(ids))
                    .values(status=ProposalStatus.EXPIRED, expiration_block=height)
                )
                await session.commit()
            return ids

    async def count_by_status(self) -> dict[ProposalStatus, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProposalDB.status, func.count()).group_by(ProposalDB.status)
            )
            counts = {status: 0 for status in ProposalStatus}
            for status, count in result.all():
                counts[ProposalStatus(status)] = count
            return counts

    async def force_expire(self, proposal_id: int) -> Proposal:
        """Eliminate a proposal regardless of its current status.

        Raises:
            ProposalNotFoundError: If the proposal does not exist
        """
        return await self.update_proposal(
            proposal_id, AdminProposalPatch(status=ProposalStatus.EXPIRED)
        )

    async def reset_competition(self) -> int:
        """Return every ``leader`` and ``expired`` proposal to ``active``.

        Leadership fields are cleared so each proposal re-enters contention
        from scratch.

        Returns:
            Number of proposals reset
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(ProposalDB)
                .where(
                    ProposalDB.status.in_(
                        [ProposalStatus.LEADER, ProposalStatus.EXPIRED]
                    )
                )
                .values(
                    status=ProposalStatus.ACTIVE,
                    first_time_as_leader=None,
                    leader_start_block=None,
                    expiration_block=None,
                )
            )
            await session.commit()
            return result.rowcount or 0

    # Inscriptions

    async def has_open_inscription(self, proposal_id: int) -> bool:
        """Whether the proposal has an inscription row that is not yet closed."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(InscriptionDB.id)
                .where(
                    InscriptionDB.proposal_id == proposal_id,
                    or_(
                        InscriptionDB.order_status.is_(None),
                        InscriptionDB.order_status.not_in(CLOSED_ORDER_STATUSES),
                    ),
                )
                .limit(1)
            )
            return result.scalars().first() is not None

    async def create_inscription(self, new: NewInscription) -> Inscription:
        async with self.session_factory() as session:
            row = InscriptionDB(**new.model_dump())
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return Inscription.model_validate(row)

    async def get_inscription(self, inscription_id: int) -> Inscription | None:
        async with self.session_factory() as session:
            row = await session.get(InscriptionDB, inscription_id)
            return Inscription.model_validate(row) if row else None

    async def inscriptions_for(self, proposal_id: int) -> list[Inscription]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(InscriptionDB)
                .where(InscriptionDB.proposal_id == proposal_id)
                .order_by(InscriptionDB.id)
            )
            return [Inscription.model_validate(row) for row in result.scalars().all()]

    async def pending_inscriptions(self) -> list[Inscription]:
        """Rows with a provider order that is still open.

        Failed rows and completed rows that carry an inscription id are left
        out. A ``completed`` row without an id is still polled.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(InscriptionDB)
                .where(
                    InscriptionDB.order_id.is_not(None),
                    or_(
                        InscriptionDB.order_status.is_(None),
                        InscriptionDB.order_status.not_in(FAILED_ORDER_STATUSES),
                    ),
                    or_(
                        InscriptionDB.order_status.is_(None),
                        InscriptionDB.order_status != ORDER_COMPLETED,
                        InscriptionDB.inscription_id.is_(None),
                    ),
                )
                .order_by(InscriptionDB.id)
            )
            return [Inscription.model_validate(row) for row in result.scalars().all()]

    async def update_inscription(
        self, inscription_id: int, patch: MonitorInscriptionPatch
    ) -> Inscription:
        """Apply the explicitly set fields of ``patch``.

        Raises:
            LookupError: If the inscription row does not exist
        """
        async with self.session_factory() as session:
            row = await session.get(InscriptionDB, inscription_id)
            if row is None:
                msg = f"Inscription {inscription_id} not found"
                raise LookupError(msg)
            for column, value in patch.changes().items():
                setattr(row, column, value)
            await session.commit()
            return Inscription.model_validate(row)


__all__ = ["CompetitionStore", "ProposalNotFoundError"]
