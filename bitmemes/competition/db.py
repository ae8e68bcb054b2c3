"""Database models for the competition."""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bitmemes.helpers.db import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class ProposalDB(Base):
    """Competition entry. Rows are created by the submission API."""

    __tablename__ = "bitmemes_proposal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(20))
    ticker: Mapped[str] = mapped_column(String(10), index=True)
    description: Mapped[str] = mapped_column(String(160))
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    twitter: Mapped[str | None] = mapped_column(Text, nullable=True)
    telegram: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    votes_up: Mapped[int] = mapped_column(Integer, default=0)
    votes_down: Mapped[int] = mapped_column(Integer, default=0)
    total_votes: Mapped[int] = mapped_column(Integer, default=0, index=True)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    first_time_as_leader: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    leader_start_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Schema default; the scheduler stamps its own value when granting leadership
    leaderboard_min_blocks: Mapped[int] = mapped_column(Integer, default=1)
    creation_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    expiration_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class InscriptionDB(Base):
    """One commit attempt (provider order) for a proposal. Never deleted."""

    __tablename__ = "bitmemes_inscription"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(
        ForeignKey("bitmemes_proposal.id"), index=True
    )
    block_height: Mapped[int] = mapped_column(BigInteger)
    block_hash: Mapped[str] = mapped_column(String(64))
    txid: Mapped[str] = mapped_column(String(64), default="pending")
    inscription_id: Mapped[str | None] = mapped_column(String(80), nullable=True)
    inscription_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    fee_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payload_metadata: Mapped[str | None] = mapped_column(
        "metadata", Text, nullable=True
    )
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    order_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    awaiting_artifact_since: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BlockTrackerDB(Base):
    """Singleton cursor of the last fully processed block."""

    __tablename__ = "bitmemes_block_tracker"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_processed_block: Mapped[int] = mapped_column(BigInteger, index=True)
    last_processed_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_checked: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )


__all__ = ["BlockTrackerDB", "InscriptionDB", "ProposalDB"]
