"""Pydantic models for UniSat inscription orders."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from bitmemes.orders.constants import (
    TERMINAL_FAILURE_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
)


class OrderOutcome(StrEnum):
    """Three-way classification of a provider status, with success split on the artifact."""

    INSCRIBED = "inscribed"
    AWAITING_ARTIFACT = "awaiting_artifact"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"


class CoinMetadata(BaseModel):
    """Coin details written into the inscription."""

    name: str
    ticker: str
    description: str
    votes: int
    website: str | None = None
    twitter: str | None = None
    telegram: str | None = None


class InscriptionPayload(BaseModel):
    """JSON document inscribed for a winning proposal."""

    project: str
    type: str
    block: int
    coin: CoinMetadata


class OrderCreated(BaseModel):
    """Result of creating an inscription order."""

    order_id: str = Field(..., alias="orderId")
    pay_address: str = Field(..., alias="payAddress")
    amount: int = Field(..., description="Sats to pay into pay_address")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OrderFile(BaseModel):
    """One inscribed file of an order."""

    filename: str | None = None
    status: str | None = None
    inscription_id: str | None = Field(default=None, alias="inscriptionId")
    txid: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OrderStatus(BaseModel):
    """Status snapshot from ``GET /v2/inscribe/order/{orderId}``."""

    order_id: str = Field(..., alias="orderId")
    status: str
    pay_address: str | None = Field(default=None, alias="payAddress")
    amount: int | None = None
    paid_amount: int | None = Field(default=None, alias="paidAmount")
    files: list[OrderFile] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def first_file(self) -> OrderFile | None:
        return self.files[0] if self.files else None

    @property
    def inscription_id(self) -> str | None:
        file = self.first_file
        return file.inscription_id if file else None

    @property
    def txid(self) -> str | None:
        file = self.first_file
        return file.txid if file else None

    @property
    def outcome(self) -> OrderOutcome:
        return classify_order_status(self.status, has_artifact=bool(self.inscription_id))


def classify_order_status(status: str, *, has_artifact: bool) -> OrderOutcome:
    """Classify a provider status string.

    Example:
        >>> classify_order_status("minted", has_artifact=False)
        <OrderOutcome.AWAITING_ARTIFACT: 'awaiting_artifact'>
        >>> classify_order_status("paid", has_artifact=False)
        <OrderOutcome.IN_PROGRESS: 'in_progress'>
    """
    if status in TERMINAL_SUCCESS_STATUSES:
        return OrderOutcome.INSCRIBED if has_artifact else OrderOutcome.AWAITING_ARTIFACT
    if status in TERMINAL_FAILURE_STATUSES:
        return OrderOutcome.FAILED
    return OrderOutcome.IN_PROGRESS


__all__ = [
    "CoinMetadata",
    "InscriptionPayload",
    "OrderCreated",
    "OrderFile",
    "OrderOutcome",
    "OrderStatus",
    "classify_order_status",
]
