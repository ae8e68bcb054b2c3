"""Pydantic models for the competition: snapshots, patches and status reports.

Patches enumerate exactly the columns a component owns. The scheduler moves
proposals into ``leader``/``expired``/``inscribing`` (and back to ``active``
when an order cannot be created) and inserts inscription rows; the monitor
owns every later change to an inscription row and the ``inscribing`` ->
``inscribed``/``active`` transitions. Only explicitly set fields are
written, so passing ``None`` clears a column.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProposalStatus(StrEnum):
    """Lifecycle status of a proposal."""

    ACTIVE = "active"
    LEADER = "leader"
    INSCRIBING = "inscribing"
    INSCRIBED = "inscribed"
    EXPIRED = "expired"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PROPOSAL_STATUSES


TERMINAL_PROPOSAL_STATUSES = frozenset({
    ProposalStatus.INSCRIBED,
    ProposalStatus.EXPIRED,
    ProposalStatus.REJECTED,
})

CONTENDER_STATUSES = frozenset({ProposalStatus.ACTIVE, ProposalStatus.LEADER})


class Proposal(BaseModel):
    """Read-only snapshot of a proposal row."""

    id: int
    name: str
    ticker: str
    description: str
    website: str | None = None
    twitter: str | None = None
    telegram: str | None = None
    image_url: str | None = None
    banner_url: str | None = None
    submitted_by: int | None = None
    votes_up: int = 0
    votes_down: int = 0
    total_votes: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    first_time_as_leader: datetime | None = None
    leader_start_block: int | None = None
    leaderboard_min_blocks: int = 1
    creation_block: int | None = None
    expiration_block: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    def blocks_as_leader(self, height: int) -> int:
        """Blocks held as leader at ``height``, counting the start block.

        Example:
            >>> proposal.leader_start_block = 100
            >>> proposal.blocks_as_leader(101)
            2
        """
        if self.leader_start_block is None:
            return 0
        return max(0, height - self.leader_start_block + 1)


class Inscription(BaseModel):
    """Read-only snapshot of an inscription (order) row."""

    id: int
    proposal_id: int
    block_height: int
    block_hash: str
    txid: str = "pending"
    inscription_id: str | None = None
    inscription_url: str | None = None
    fee_rate: int | None = None
    payload_metadata: str | None = None
    order_id: str | None = None
    order_status: str | None = None
    payment_address: str | None = None
    payment_amount: int | None = None
    awaiting_artifact_since: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BlockCursor(BaseModel):
    """Snapshot of the block tracker."""

    last_processed_block: int
    last_processed_hash: str | None = None
    last_checked: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class _Patch(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def changes(self) -> dict[str, Any]:
        """Column values to write: only the fields that were set explicitly."""
        return self.model_dump(exclude_unset=True)


class ProposalPatch(_Patch):
    """Base for proposal updates."""

    status: ProposalStatus | None = None


class SchedulerProposalPatch(ProposalPatch):
    """Proposal columns the scheduler may write."""

    first_time_as_leader: datetime | None = None
    leader_start_block: int | None = None
    leaderboard_min_blocks: int | None = None
    expiration_block: int | None = None

    @field_validator("status")
    @classmethod
    def _scheduler_statuses(cls, value: ProposalStatus | None) -> ProposalStatus | None:
        allowed = {
            ProposalStatus.LEADER,
            ProposalStatus.EXPIRED,
            ProposalStatus.INSCRIBING,
            ProposalStatus.ACTIVE,
        }
        if value is not None and value not in allowed:
            msg = f"scheduler cannot set status {value}"
            raise ValueError(msg)
        return value


class MonitorProposalPatch(ProposalPatch):
    """Proposal columns the order monitor may write."""

    first_time_as_leader: None = None
    leader_start_block: None = None
    expiration_block: None = None

    @field_validator("status")
    @classmethod
    def _monitor_statuses(cls, value: ProposalStatus | None) -> ProposalStatus | None:
        if value is not None and value not in {
            ProposalStatus.INSCRIBED,
            ProposalStatus.ACTIVE,
        }:
            msg = f"order monitor cannot set status {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def reset(cls) -> MonitorProposalPatch:
        """Back to open contention with no leadership history."""
        return cls(
            status=ProposalStatus.ACTIVE,
            first_time_as_leader=None,
            leader_start_block=None,
            expiration_block=None,
        )


class AdminProposalPatch(ProposalPatch):
    """Manual interventions: elimination and competition reset."""

    first_time_as_leader: None = None
    leader_start_block: None = None
    expiration_block: None = None


class NewInscription(BaseModel):
    """Inscription row inserted by the scheduler after an order is created."""

    proposal_id: int
    block_height: int
    block_hash: str
    order_id: str
    order_status: str
    payment_address: str
    payment_amount: int
    fee_rate: int | None = None
    payload_metadata: str | None = None

    model_config = ConfigDict(frozen=True)


class MonitorInscriptionPatch(_Patch):
    """Inscription columns the order monitor may write."""

    order_status: str | None = None
    inscription_id: str | None = None
    inscription_url: str | None = None
    txid: str | None = None
    awaiting_artifact_since: datetime | None = None


class TopProposal(BaseModel):
    """Current front-runner summary."""

    id: int
    ticker: str
    votes: int
    status: ProposalStatus
    blocks_as_leader: int


class CompetitionStats(BaseModel):
    """Proposal counts per lifecycle stage."""

    total_active: int = 0
    current_leaders: int = 0
    currently_inscribing: int = 0
    total_expired: int = 0
    total_inscribed: int = 0
    top_proposal: TopProposal | None = None


class SchedulerStatus(BaseModel):
    """Snapshot of the scheduler for operators."""

    is_running: bool
    current_block: int
    last_processed_block: int
    last_processed_hash: str | None = None
    last_checked: datetime | None = None
    blocks_behind: int = Field(default=0, ge=0)
    competition: CompetitionStats | None = None
    error: str | None = None


class MonitorStatus(BaseModel):
    """Snapshot of the order monitor for operators."""

    is_running: bool
    last_checked: datetime | None = None


__all__ = [
    "AdminProposalPatch",
    "BlockCursor",
    "CONTENDER_STATUSES",
    "CompetitionStats",
    "Inscription",
    "MonitorInscriptionPatch",
    "MonitorProposalPatch",
    "MonitorStatus",
    "NewInscription",
    "Proposal",
    "ProposalPatch",
    "ProposalStatus",
    "SchedulerProposalPatch",
    "SchedulerStatus",
    "TERMINAL_PROPOSAL_STATUSES",
    "TopProposal",
]
