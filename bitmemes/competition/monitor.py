"""Order reconciliation monitor.

Polls UniSat for every inscription order that has not failed and moves the
owning proposal to its final state:

- success with an inscription id: ``inscribed``
- success without an inscription id: wait, then reset once the wait exceeds
  ``stuck_order_timeout``
- provider failure: reset to ``active`` with leadership cleared
- anything else: record the latest status and check again next cycle

Provider lookup errors leave the row untouched for the cycle; only statuses
reported by the provider reset proposals.

The proposal is written before the row is closed, so a cycle that fails in
between is repeated in full on the next poll. Only proposals still in
``inscribing`` are moved.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import UTC, datetime

from typing import TYPE_CHECKING

from bitmemes.competition.db import utcnow
from bitmemes.competition.models import (
    MonitorInscriptionPatch,
    MonitorProposalPatch,
    MonitorStatus,
    ProposalStatus,
)
from bitmemes.helpers.config import CompetitionSettings
from bitmemes.helpers.logging import get_logger
from bitmemes.orders.constants import (
    ORDER_COMPLETED,
    ORDER_STUCK_TIMEOUT_RESET,
    ORDINALS_INSCRIPTION_URL,
)
from bitmemes.orders.models import OrderOutcome


if TYPE_CHECKING:
    from bitmemes.competition.models import Inscription
    from bitmemes.competition.store import CompetitionStore
    from bitmemes.orders.models import OrderStatus
    from bitmemes.orders.unisat import UnisatClient


logger = get_logger(__name__)

ERRORS = "errors"


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class OrderMonitor:
    """Reconcile open inscription orders with UniSat."""

    def __init__(
        self,
        store: CompetitionStore,
        provider: UnisatClient,
        settings: CompetitionSettings | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.settings = settings or CompetitionSettings()

        self.is_running = False
        self.last_checked: datetime | None = None

    async def tick(self) -> bool:
        """Run one reconciliation cycle.

        Returns:
            False if a cycle was already in progress and this one was skipped
        """
        if self.is_running:
            logger.info("Order monitor cycle already in progress, skipping")
            return False

        self.is_running = True
        try:
            await self.check_all_pending_orders()
            self.last_checked = utcnow()
        except Exception:
            logger.exception("Order monitor cycle failed")
        finally:
            self.is_running = False
        return True

    def status(self) -> MonitorStatus:
        return MonitorStatus(is_running=self.is_running, last_checked=self.last_checked)

    async def check_all_pending_orders(self) -> Counter[str]:
        """Poll every open order once.

        Returns:
            Count of rows per outcome, plus ``errors``
        """
        rows = await self.store.pending_inscriptions()
        summary: Counter[str] = Counter()
        polled = 0

        for row in rows:
            if row.order_id is None:
                continue

            if polled and self.settings.order_poll_delay > 0:
                await asyncio.sleep(self.settings.order_poll_delay)
            polled += 1

            try:
                order = await self.provider.get_order_status(row.order_id)
            except Exception as e:
                logger.warning(
                    "Could not fetch order %s for proposal %d, retrying next cycle: %s",
                    row.order_id,
                    row.proposal_id,
                    e,
                )
                summary[ERRORS] += 1
                continue

            try:
                outcome = await self.reconcile(row, order)
            except Exception:
                logger.exception(
                    "Failed to reconcile order %s for proposal %d",
                    row.order_id,
                    row.proposal_id,
                )
                summary[ERRORS] += 1
                continue
            summary[outcome] += 1

        if polled:
            logger.info("Checked %d order(s): %s", polled, dict(summary))
        return summary

    async def reconcile(self, row: Inscription, order: OrderStatus) -> OrderOutcome:
        """Apply the effect of one provider status to the store."""
        outcome = order.outcome
        match outcome:
            case OrderOutcome.INSCRIBED:
                await self._mark_inscribed(row, order)
            case OrderOutcome.AWAITING_ARTIFACT:
                await self._await_artifact(row, order)
            case OrderOutcome.FAILED:
                await self._mark_failed(row, order)
            case OrderOutcome.IN_PROGRESS:
                await self._record_progress(row, order)
        return outcome

    async def _mark_inscribed(self, row: Inscription, order: OrderStatus) -> None:
        inscription_id = order.inscription_id
        await self._move_proposal(
            row.proposal_id, MonitorProposalPatch(status=ProposalStatus.INSCRIBED)
        )
        patch = MonitorInscriptionPatch(
            order_status=ORDER_COMPLETED,
            inscription_id=inscription_id,
            inscription_url=ORDINALS_INSCRIPTION_URL.format(inscription_id=inscription_id),
            **({"txid": order.txid} if order.txid else {}),
        )
        await self.store.update_inscription(row.id, patch)
        logger.info(
            "Proposal %d inscribed: %s (order %s)",
            row.proposal_id,
            inscription_id,
            row.order_id,
        )

    async def _await_artifact(self, row: Inscription, order: OrderStatus) -> None:
        now = utcnow()
        if row.awaiting_artifact_since is None:
            await self.store.update_inscription(
                row.id,
                MonitorInscriptionPatch(
                    order_status=order.status, awaiting_artifact_since=now
                ),
            )
            logger.info(
                "Order %s is %s but has no inscription id yet",
                row.order_id,
                order.status,
            )
            return

        waited = (now - as_utc(row.awaiting_artifact_since)).total_seconds()
        if waited <= self.settings.stuck_order_timeout:
            if order.status != row.order_status:
                await self.store.update_inscription(
                    row.id, MonitorInscriptionPatch(order_status=order.status)
                )
            return

        await self._move_proposal(row.proposal_id, MonitorProposalPatch.reset())
        await self.store.update_inscription(
            row.id, MonitorInscriptionPatch(order_status=ORDER_STUCK_TIMEOUT_RESET)
        )
        logger.warning(
            "Order %s stuck without an inscription id for %.0fs, proposal %d reset",
            row.order_id,
            waited,
            row.proposal_id,
        )

    async def _mark_failed(self, row: Inscription, order: OrderStatus) -> None:
        await self._move_proposal(row.proposal_id, MonitorProposalPatch.reset())
        await self.store.update_inscription(
            row.id, MonitorInscriptionPatch(order_status=order.status)
        )
        logger.warning(
            "Order %s %s, proposal %d back in contention",
            row.order_id,
            order.status,
            row.proposal_id,
        )

    async def _record_progress(self, row: Inscription, order: OrderStatus) -> None:
        if order.status != row.order_status:
            await self.store.update_inscription(
                row.id, MonitorInscriptionPatch(order_status=order.status)
            )
            logger.info("Order %s is now %s", row.order_id, order.status)

        if row.created_at is not None:
            pending_for = (utcnow() - as_utc(row.created_at)).total_seconds()
            if pending_for > self.settings.pending_order_warning_after:
                logger.warning(
                    "Order %s for proposal %d pending for %.1fh (status %s)",
                    row.order_id,
                    row.proposal_id,
                    pending_for / 3600,
                    order.status,
                )

    async def _move_proposal(self, proposal_id: int, patch: MonitorProposalPatch) -> None:
        """Apply ``patch`` if the proposal is still ``inscribing``."""
        proposal = await self.store.get_proposal(proposal_id)
        if proposal is None:
            logger.warning("Proposal %d not found, leaving it alone", proposal_id)
            return
        if proposal.status != ProposalStatus.INSCRIBING:
            logger.info(
                "Proposal %d is %s, not moving it to %s",
                proposal_id,
                proposal.status,
                patch.status,
            )
            return
        await self.store.update_proposal(proposal_id, patch)


__all__ = ["OrderMonitor", "as_utc"]
