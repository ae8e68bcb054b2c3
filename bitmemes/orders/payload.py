"""Inscription payload construction."""

from __future__ import annotations

import base64

from typing import TYPE_CHECKING

from bitmemes.orders.constants import INSCRIPTION_PROJECT, INSCRIPTION_TYPE
from bitmemes.orders.models import CoinMetadata, InscriptionPayload


if TYPE_CHECKING:
    from bitmemes.competition.models import Proposal


def build_inscription_payload(proposal: Proposal, block_height: int) -> InscriptionPayload:
    """Build the JSON document inscribed for a winning proposal.

    Args:
        proposal: Snapshot of the winning proposal
        block_height: Block at which the proposal won

    Returns:
        InscriptionPayload with coin details and the vote count at commit time
    """
    return InscriptionPayload(
        project=INSCRIPTION_PROJECT,
        type=INSCRIPTION_TYPE,
        block=block_height,
        coin=CoinMetadata(
            name=proposal.name,
            ticker=proposal.ticker,
            description=proposal.description,
            votes=proposal.total_votes,
            website=proposal.website,
            twitter=proposal.twitter,
            telegram=proposal.telegram,
        ),
    )


def payload_json(payload: InscriptionPayload) -> str:
    """Serialize a payload the way it is inscribed (indented, nulls dropped)."""
    return payload.model_dump_json(indent=2, exclude_none=True)


def inscription_filename(payload: InscriptionPayload) -> str:
    """File name for the inscribed document.

    Example:
        >>> inscription_filename(payload)  # ticker "PEPE", block 840000
        'bitmemes-pepe-840000.json'
    """
    return f"{payload.project}-{payload.coin.ticker.lower()}-{payload.block}.json"


def to_data_url(payload: InscriptionPayload) -> str:
    """Encode a payload as a base64 JSON data URL."""
    encoded = base64.b64encode(payload_json(payload).encode()).decode()
    return f"data:application/json;base64,{encoded}"


__all__ = [
    "build_inscription_payload",
    "inscription_filename",
    "payload_json",
    "to_data_url",
]
