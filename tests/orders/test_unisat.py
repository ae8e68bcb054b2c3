"""Tests for the UniSat order client."""

from __future__ import annotations

import base64
import json

from typing import TYPE_CHECKING

import httpx
import pytest

from bitmemes.orders.models import CoinMetadata, InscriptionPayload, OrderOutcome
from bitmemes.orders.unisat import UnisatAPIError, UnisatClient


if TYPE_CHECKING:
    from pytest_httpx import HTTPXMock


TESTNET = "https://open-api-testnet.unisat.io"
INSCRIPTION_ID = "6fb976ab49dcec017f1e201e84395983204ae1a7c2abf7ced0a85d692e442799i0"


@pytest.fixture
def payload() -> InscriptionPayload:
    return InscriptionPayload(
        project="bitmemes",
        type="meme-coin-inscription",
        block=840000,
        coin=CoinMetadata(
            name="Pepe Coin",
            ticker="PEPE",
            description="The frog",
            votes=42,
            twitter="https://x.com/pepe",
        ),
    )


class TestUnisatClientInit:
    """Tests for UnisatClient construction."""

    def test_empty_api_key_raises(self) -> None:
        """Test an API key is required."""
        with pytest.raises(ValueError, match="UniSat API key cannot be empty"):
            UnisatClient(httpx.AsyncClient(), "")

    def test_network_base_urls(self) -> None:
        """Test each network has its own API root."""
        http = httpx.AsyncClient()
        assert UnisatClient(http, "key").base_url == TESTNET
        assert (
            UnisatClient(http, "key", network="mainnet").base_url
            == "https://open-api.unisat.io"
        )

    def test_from_env_requires_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test UNISAT_API must be configured."""
        monkeypatch.delenv("UNISAT_API", raising=False)
        with pytest.raises(ValueError, match="UNISAT_API environment variable is not set"):
            UnisatClient.from_env(httpx.AsyncClient())

    def test_bearer_header(self) -> None:
        """Test requests authenticate with a bearer token."""
        client = UnisatClient(httpx.AsyncClient(), "secret-key")
        assert client.headers == {"Authorization": "Bearer secret-key"}


class TestCreateOrder:
    """Tests for create_order."""

    @pytest.mark.asyncio
    async def test_creates_order(
        self, httpx_mock: HTTPXMock, payload: InscriptionPayload
    ) -> None:
        """Test the order body and the parsed result."""
        httpx_mock.add_response(
            method="POST",
            url=f"{TESTNET}/v2/inscribe/order/create",
            match_headers={"Authorization": "Bearer key"},
            json={
                "code": 0,
                "msg": "ok",
                "data": {
                    "orderId": "e1a6f0d0",
                    "payAddress": "tb1pqpay",
                    "amount": 11234,
                    "feeRate": 5,
                    "status": "pending",
                },
            },
        )

        async with httpx.AsyncClient() as http:
            client = UnisatClient(http, "key", fee_rate=5)
            order = await client.create_order(payload, "tb1qreceive")

        assert order.order_id == "e1a6f0d0"
        assert order.pay_address == "tb1pqpay"
        assert order.amount == 11234

        body = json.loads(httpx_mock.get_requests()[0].content)
        assert body["receiveAddress"] == "tb1qreceive"
        assert body["feeRate"] == 5
        assert body["outputValue"] == 546
        [file] = body["files"]
        assert file["filename"] == "bitmemes-pepe-840000.json"
        prefix = "data:application/json;base64,"
        assert file["dataURL"].startswith(prefix)
        document = json.loads(base64.b64decode(file["dataURL"][len(prefix) :]))
        assert document["coin"]["ticker"] == "PEPE"
        assert document["coin"]["votes"] == 42
        assert "website" not in document["coin"]

    @pytest.mark.asyncio
    async def test_envelope_error_raises(
        self, httpx_mock: HTTPXMock, payload: InscriptionPayload
    ) -> None:
        """Test a non-zero envelope code raises UnisatAPIError."""
        httpx_mock.add_response(
            method="POST",
            url=f"{TESTNET}/v2/inscribe/order/create",
            json={"code": -1, "msg": "insufficient balance", "data": None},
        )

        async with httpx.AsyncClient() as http:
            with pytest.raises(UnisatAPIError, match="UniSat API error -1: insufficient balance"):
                await UnisatClient(http, "key").create_order(payload, "tb1qreceive")

    @pytest.mark.asyncio
    async def test_create_is_never_retried(
        self, httpx_mock: HTTPXMock, payload: InscriptionPayload
    ) -> None:
        """Test a failed create is not replayed."""
        httpx_mock.add_response(
            method="POST", url=f"{TESTNET}/v2/inscribe/order/create", status_code=503
        )

        async with httpx.AsyncClient() as http:
            with pytest.raises(httpx.HTTPStatusError):
                await UnisatClient(http, "key", base_delay=0).create_order(
                    payload, "tb1qreceive"
                )

        assert len(httpx_mock.get_requests()) == 1


class TestGetOrderStatus:
    """Tests for get_order_status."""

    @pytest.mark.asyncio
    async def test_parses_inscribed_order(self, httpx_mock: HTTPXMock) -> None:
        """Test a minted order exposes its inscription."""
        httpx_mock.add_response(
            url=f"{TESTNET}/v2/inscribe/order/e1a6f0d0",
            json={
                "code": 0,
                "msg": "ok",
                "data": {
                    "orderId": "e1a6f0d0",
                    "status": "minted",
                    "payAddress": "tb1pqpay",
                    "amount": 11234,
                    "paidAmount": 11234,
                    "files": [
                        {
                            "filename": "bitmemes-pepe-840000.json",
                            "status": "confirmed",
                            "inscriptionId": INSCRIPTION_ID,
                            "txid": "6fb976ab",
                        }
                    ],
                },
            },
        )

        async with httpx.AsyncClient() as http:
            status = await UnisatClient(http, "key").get_order_status("e1a6f0d0")

        assert status.status == "minted"
        assert status.paid_amount == 11234
        assert status.inscription_id == INSCRIPTION_ID
        assert status.txid == "6fb976ab"
        assert status.outcome == OrderOutcome.INSCRIBED

    @pytest.mark.asyncio
    async def test_retries_rate_limit(self, httpx_mock: HTTPXMock) -> None:
        """Test 429 responses are retried."""
        url = f"{TESTNET}/v2/inscribe/order/o1"
        httpx_mock.add_response(url=url, status_code=429)
        httpx_mock.add_response(
            url=url,
            json={"code": 0, "msg": "ok", "data": {"orderId": "o1", "status": "pending"}},
        )

        async with httpx.AsyncClient() as http:
            status = await UnisatClient(http, "key", base_delay=0).get_order_status("o1")

        assert status.outcome == OrderOutcome.IN_PROGRESS
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, httpx_mock: HTTPXMock) -> None:
        """Test persistent 5xx responses raise after the last attempt."""
        url = f"{TESTNET}/v2/inscribe/order/o1"
        for _ in range(2):
            httpx_mock.add_response(url=url, status_code=502)

        async with httpx.AsyncClient() as http:
            client = UnisatClient(http, "key", max_retries=2, base_delay=0)
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_order_status("o1")

        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_envelope_error_is_not_retried(self, httpx_mock: HTTPXMock) -> None:
        """Test an unknown order fails without retrying."""
        httpx_mock.add_response(
            url=f"{TESTNET}/v2/inscribe/order/missing",
            json={"code": -1, "msg": "order not found", "data": None},
        )

        async with httpx.AsyncClient() as http:
            with pytest.raises(UnisatAPIError) as excinfo:
                await UnisatClient(http, "key", base_delay=0).get_order_status("missing")

        assert excinfo.value.code == -1
        assert excinfo.value.message == "order not found"
        assert len(httpx_mock.get_requests()) == 1
