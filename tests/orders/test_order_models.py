"""Tests for order models and the inscription payload."""

import base64
import json

import pytest

from bitmemes.competition.models import Proposal, ProposalStatus
from bitmemes.orders.models import OrderOutcome, OrderStatus, classify_order_status
from bitmemes.orders.payload import (
    build_inscription_payload,
    inscription_filename,
    payload_json,
    to_data_url,
)


def make_proposal(**overrides) -> Proposal:
    fields = {
        "id": 7,
        "name": "Doge Moon",
        "ticker": "DMOON",
        "description": "To the moon",
        "total_votes": 12,
        "status": ProposalStatus.LEADER,
        "creation_block": 100,
        "website": "https://dmoon.example",
    }
    fields.update(overrides)
    return Proposal.model_validate(fields)


class TestClassifyOrderStatus:
    """Tests for classify_order_status."""

    @pytest.mark.parametrize(
        "status", ["payment_withinscription", "minted", "confirmed", "sent", "completed"]
    )
    def test_success_with_artifact(self, status: str) -> None:
        """Test terminal success with an inscription id is inscribed."""
        assert classify_order_status(status, has_artifact=True) == OrderOutcome.INSCRIBED

    @pytest.mark.parametrize("status", ["minted", "sent"])
    def test_success_without_artifact(self, status: str) -> None:
        """Test terminal success without an inscription id waits for it."""
        assert (
            classify_order_status(status, has_artifact=False)
            == OrderOutcome.AWAITING_ARTIFACT
        )

    @pytest.mark.parametrize("status", ["canceled", "failed", "timeout", "refunded"])
    def test_failure(self, status: str) -> None:
        """Test terminal failures ignore the artifact."""
        assert classify_order_status(status, has_artifact=False) == OrderOutcome.FAILED
        assert classify_order_status(status, has_artifact=True) == OrderOutcome.FAILED

    @pytest.mark.parametrize("status", ["pending", "paid", "inscribing", "something_new"])
    def test_in_progress(self, status: str) -> None:
        """Test every other status is still in progress."""
        assert (
            classify_order_status(status, has_artifact=False) == OrderOutcome.IN_PROGRESS
        )


class TestOrderStatus:
    """Tests for the OrderStatus response model."""

    def test_without_files(self) -> None:
        """Test an order with no files has no artifact."""
        status = OrderStatus.model_validate({"orderId": "o1", "status": "minted"})

        assert status.first_file is None
        assert status.inscription_id is None
        assert status.txid is None
        assert status.outcome == OrderOutcome.AWAITING_ARTIFACT

    def test_first_file_wins(self) -> None:
        """Test the artifact comes from the first file."""
        status = OrderStatus.model_validate(
            {
                "orderId": "o1",
                "status": "sent",
                "files": [
                    {"inscriptionId": "abci0", "txid": "abc"},
                    {"inscriptionId": "defi0", "txid": "def"},
                ],
                "unknownField": True,
            }
        )

        assert status.inscription_id == "abci0"
        assert status.txid == "abc"
        assert status.outcome == OrderOutcome.INSCRIBED


class TestInscriptionPayload:
    """Tests for payload construction and encoding."""

    def test_build_from_proposal(self) -> None:
        """Test the payload carries the coin details and the block."""
        payload = build_inscription_payload(make_proposal(), 840000)

        assert payload.project == "bitmemes"
        assert payload.type == "meme-coin-inscription"
        assert payload.block == 840000
        assert payload.coin.ticker == "DMOON"
        assert payload.coin.votes == 12
        assert payload.coin.website == "https://dmoon.example"
        assert payload.coin.twitter is None

    def test_json_drops_missing_links(self) -> None:
        """Test absent social links are left out of the document."""
        document = json.loads(payload_json(build_inscription_payload(make_proposal(), 1)))

        assert document["coin"]["website"] == "https://dmoon.example"
        assert "twitter" not in document["coin"]
        assert "telegram" not in document["coin"]

    def test_filename_uses_lowercase_ticker(self) -> None:
        """Test the file name pattern."""
        payload = build_inscription_payload(make_proposal(), 840000)

        assert inscription_filename(payload) == "bitmemes-dmoon-840000.json"

    def test_data_url_round_trips(self) -> None:
        """Test the data URL decodes to the serialized payload."""
        payload = build_inscription_payload(make_proposal(), 840000)

        url = to_data_url(payload)
        header, encoded = url.split(",", 1)

        assert header == "data:application/json;base64"
        assert base64.b64decode(encoded).decode() == payload_json(payload)
