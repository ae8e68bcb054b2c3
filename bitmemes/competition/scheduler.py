"""Competition scheduler: the block-driven leadership state machine.

Each new block runs the same transition:

1. Expire ``active`` proposals that never led within ``expire_after_blocks``.
2. Pick the top contender (``active`` or ``leader``, most votes, lower id
   on ties). Any other ``leader`` is dethroned and expired.
3. A contender that never led becomes ``leader`` at this block.
4. A leader that has held ``leaderboard_min_blocks`` blocks is committed:
   an inscription order is created and the proposal moves to
   ``inscribing``. The order monitor takes it from there.

Usage:
    ```python
    scheduler = CompetitionScheduler(store, chain, provider, notifier, settings)
    await scheduler.tick()
    ```
"""

from __future__ import annotations

import asyncio

from typing import TYPE_CHECKING

from bitmemes.competition.db import utcnow
from bitmemes.competition.models import (
    CompetitionStats,
    NewInscription,
    ProposalStatus,
    SchedulerProposalPatch,
    SchedulerStatus,
    TopProposal,
)
from bitmemes.competition.store import ProposalNotFoundError
from bitmemes.helpers.config import CompetitionSettings
from bitmemes.helpers.http import log_and_suppress_errors
from bitmemes.helpers.logging import get_logger
from bitmemes.orders.constants import ORDER_PENDING
from bitmemes.orders.payload import build_inscription_payload, payload_json


if TYPE_CHECKING:
    from bitmemes.chain.esplora import EsploraClient
    from bitmemes.competition.models import Proposal
    from bitmemes.competition.store import CompetitionStore
    from bitmemes.launch.notifier import LaunchNotifier
    from bitmemes.orders.unisat import UnisatClient


logger = get_logger(__name__)


class CompetitionScheduler:
    """Advance the competition one block at a time."""

    def __init__(
        self,
        store: CompetitionStore,
        chain: EsploraClient,
        provider: UnisatClient,
        notifier: LaunchNotifier,
        settings: CompetitionSettings | None = None,
    ) -> None:
        self.store = store
        self.chain = chain
        self.provider = provider
        self.notifier = notifier
        self.settings = settings or CompetitionSettings()

        self.is_running = False
        self._notifications: set[asyncio.Task[None]] = set()

    async def tick(self) -> bool:
        """Process every block since the last processed one.

        Returns:
            False if a tick was already in progress and this one was skipped
        """
        if self.is_running:
            logger.info("Scheduler tick already in progress, skipping")
            return False

        self.is_running = True
        try:
            await self._process_new_blocks()
        except Exception:
            logger.exception("Scheduler tick failed")
        finally:
            self.is_running = False
        return True

    async def trigger_manually(self) -> bool:
        """Run one tick now, subject to the same single-flight guard."""
        logger.info("Manual scheduler trigger")
        return await self.tick()

    async def _process_new_blocks(self) -> None:
        current_height = await self.chain.current_height()
        cursor = await self.store.get_cursor()

        if cursor is not None:
            last_processed = cursor.last_processed_block
        elif self.settings.start_block is not None:
            last_processed = self.settings.start_block
        else:
            last_processed = current_height - 1

        if current_height <= last_processed:
            logger.debug("No new blocks (tip %d)", current_height)
            await self.store.touch_cursor()
            return

        logger.info(
            "Processing blocks %d..%d", last_processed + 1, current_height
        )
        for height in range(last_processed + 1, current_height + 1):
            try:
                block_hash = await self.process_block(height)
                await self.store.advance_cursor(height, block_hash)
            except Exception:
                logger.exception("Failed to process block %d, retrying next tick", height)
                break

    async def process_block(self, height: int) -> str:
        """Run the competition transition for one block.

        Returns:
            The block hash, recorded with the cursor
        """
        block = await self.chain.block_at(height)
        settings = self.settings

        expired = await self.store.expire_stale_active(height, settings.expire_after_blocks)
        if expired:
            logger.info(
                "Block %d: expired %d stale proposal(s): %s", height, len(expired), expired
            )

        contender = await self.store.top_contender()
        if contender is None:
            logger.debug("Block %d: no contenders", height)
            return block.hash
        if contender.total_votes < settings.min_votes_to_lead:
            logger.debug(
                "Block %d: top proposal %d has %d votes, below %d",
                height,
                contender.id,
                contender.total_votes,
                settings.min_votes_to_lead,
            )
            return block.hash

        dethroned = await self.store.expire_other_leaders(contender.id, height)
        if dethroned:
            logger.info(
                "Block %d: proposal %d took the lead, dethroned %s",
                height,
                contender.id,
                dethroned,
            )

        if await self.store.has_open_inscription(contender.id):
            logger.info(
                "Block %d: proposal %d already has an open order", height, contender.id
            )
            return block.hash

        if contender.first_time_as_leader is None:
            await self.store.update_proposal(
                contender.id,
                SchedulerProposalPatch(
                    status=ProposalStatus.LEADER,
                    first_time_as_leader=utcnow(),
                    leader_start_block=height,
                    leaderboard_min_blocks=settings.leaderboard_min_blocks,
                    expiration_block=height + settings.leadership_window_blocks,
                ),
            )
            logger.info(
                "Block %d: proposal %d (%s) is the new leader with %d votes",
                height,
                contender.id,
                contender.ticker,
                contender.total_votes,
            )
            return block.hash

        blocks_as_leader = contender.blocks_as_leader(height)
        if blocks_as_leader < contender.leaderboard_min_blocks:
            logger.info(
                "Block %d: proposal %d has led %d/%d blocks",
                height,
                contender.id,
                blocks_as_leader,
                contender.leaderboard_min_blocks,
            )
            return block.hash

        await self._commit(contender, height, block.hash)
        return block.hash

    async def _commit(self, proposal: Proposal, height: int, block_hash: str) -> None:
        """Create the inscription order for a proposal that held the lead.

        Any failure returns the proposal to ``active`` with its leadership
        history intact, so the next block retries the commit.
        """
        logger.info(
            "Block %d: proposal %d (%s) held the lead, creating inscription order",
            height,
            proposal.id,
            proposal.ticker,
        )
        await self.store.update_proposal(
            proposal.id, SchedulerProposalPatch(status=ProposalStatus.INSCRIBING)
        )

        try:
            receive_address = self.settings.receive_address
            if not receive_address:
                msg = "UNISAT_RECEIVE_ADDRESS environment variable is not set"
                raise ValueError(msg)

            payload = build_inscription_payload(proposal, height)
            order = await self.provider.create_order(payload, receive_address)
            await self.store.create_inscription(
                NewInscription(
                    proposal_id=proposal.id,
                    block_height=height,
                    block_hash=block_hash,
                    order_id=order.order_id,
                    order_status=ORDER_PENDING,
                    payment_address=order.pay_address,
                    payment_amount=order.amount,
                    fee_rate=self.settings.fee_rate,
                    payload_metadata=payload_json(payload),
                )
            )
        except Exception:
            logger.exception(
                "Inscription order for proposal %d failed, returning it to active",
                proposal.id,
            )
            await self.store.update_proposal(
                proposal.id, SchedulerProposalPatch(status=ProposalStatus.ACTIVE)
            )
            return

        logger.info(
            "Proposal %d is inscribing (order %s)", proposal.id, order.order_id
        )
        self._notify_in_background(proposal)

    def _notify_in_background(self, proposal: Proposal) -> None:
        task = asyncio.create_task(
            self._notify(proposal), name=f"launch-notify-{proposal.id}"
        )
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _notify(self, proposal: Proposal) -> None:
        async with log_and_suppress_errors(
            f"launch notification for proposal {proposal.id}", log_level="error"
        ):
            await self.notifier.notify_leadership_complete(proposal)

    async def wait_for_notifications(self) -> None:
        """Wait for background launch notifications to finish."""
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)

    # Admin operations

    async def competition_stats(self, height: int | None = None) -> CompetitionStats:
        """Proposal counts per stage plus the current front-runner."""
        counts = await self.store.count_by_status()
        stats = CompetitionStats(
            total_active=counts[ProposalStatus.ACTIVE],
            current_leaders=counts[ProposalStatus.LEADER],
            currently_inscribing=counts[ProposalStatus.INSCRIBING],
            total_expired=counts[ProposalStatus.EXPIRED],
            total_inscribed=counts[ProposalStatus.INSCRIBED],
        )

        top = await self.store.top_contender()
        if top is not None:
            if height is None:
                cursor = await self.store.get_cursor()
                height = cursor.last_processed_block if cursor else 0
            stats.top_proposal = TopProposal(
                id=top.id,
                ticker=top.ticker,
                votes=top.total_votes,
                status=top.status,
                blocks_as_leader=top.blocks_as_leader(height),
            )
        return stats

    async def status(self) -> SchedulerStatus:
        """Running flag, chain position and competition stats."""
        cursor = await self.store.get_cursor()
        last_processed = cursor.last_processed_block if cursor else 0

        try:
            current_height = await self.chain.current_height()
        except Exception as e:
            logger.warning("Could not read chain height for status: %s", e)
            return SchedulerStatus(
                is_running=self.is_running,
                current_block=0,
                last_processed_block=last_processed,
                last_processed_hash=cursor.last_processed_hash if cursor else None,
                last_checked=cursor.last_checked if cursor else None,
                error=str(e),
            )

        return SchedulerStatus(
            is_running=self.is_running,
            current_block=current_height,
            last_processed_block=last_processed,
            last_processed_hash=cursor.last_processed_hash if cursor else None,
            last_checked=cursor.last_checked if cursor else None,
            blocks_behind=max(0, current_height - last_processed),
            competition=await self.competition_stats(current_height),
        )

    async def force_expire_proposal(self, proposal_id: int, reason: str = "") -> Proposal:
        """Eliminate a proposal by hand.

        Raises:
            ProposalNotFoundError: If the proposal does not exist
        """
        proposal = await self.store.get_proposal(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)

        expired = await self.store.force_expire(proposal_id)
        logger.warning(
            "Proposal %d (%s) force-expired from %s: %s",
            proposal_id,
            proposal.ticker,
            proposal.status,
            reason or "no reason given",
        )
        return expired

    async def reset_competition(self, reason: str = "") -> int:
        """Put every leader and expired proposal back into contention.

        Returns:
            Number of proposals reset
        """
        reset = await self.store.reset_competition()
        logger.warning(
            "Competition reset, %d proposal(s) back to active: %s",
            reset,
            reason or "no reason given",
        )
        return reset


__all__ = ["CompetitionScheduler"]
