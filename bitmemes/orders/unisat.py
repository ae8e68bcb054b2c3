"""UniSat inscription order client: the commit provider."""

from __future__ import annotations

from typing import Any

import httpx

from bitmemes.helpers.config import get_bitcoin_network, get_required_env
from bitmemes.helpers.constants import (
    DEFAULT_FEE_RATE,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from bitmemes.helpers.http import retry_with_backoff
from bitmemes.helpers.logging import get_logger
from bitmemes.orders.constants import INSCRIPTION_OUTPUT_VALUE, UNISAT_API_URLS
from bitmemes.orders.models import InscriptionPayload, OrderCreated, OrderStatus
from bitmemes.orders.payload import inscription_filename, to_data_url


logger = get_logger(__name__)


class UnisatAPIError(Exception):
    """UniSat answered with a non-zero ``code`` in its response envelope."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"UniSat API error {code}: {message}")
        self.code = code
        self.message = message


class UnisatClient:
    """Client for the UniSat inscribe API.

    Status lookups are retried with exponential backoff and jitter on rate
    limiting, 5xx responses and network errors. Order creation is sent once:
    replaying it could open a second paid order.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        *,
        network: str = "testnet",
        base_url: str | None = None,
        fee_rate: int = DEFAULT_FEE_RATE,
        output_value: int = INSCRIPTION_OUTPUT_VALUE,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        """Initialize the client.

        Args:
            http_client: Shared HTTP client
            api_key: UniSat API key (sent as a bearer token)
            network: ``mainnet`` or ``testnet``
            base_url: API root override
            fee_rate: Inscription fee rate in sat/vB
            output_value: Postage attached to the inscription output
            timeout: Per-request timeout in seconds
            max_retries: Attempts per status lookup
            base_delay: Backoff base delay in seconds

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            msg = "UniSat API key cannot be empty"
            raise ValueError(msg)

        self.http_client = http_client
        self.api_key = api_key
        self.base_url = (base_url or UNISAT_API_URLS[network]).rstrip("/")
        self.fee_rate = fee_rate
        self.output_value = output_value
        self.timeout = timeout

        self._fetch_status = retry_with_backoff(
            max_retries=max_retries, base_delay=base_delay
        )(self._fetch_status_once)

    @classmethod
    def from_env(
        cls,
        http_client: httpx.AsyncClient,
        *,
        fee_rate: int = DEFAULT_FEE_RATE,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
    ) -> UnisatClient:
        """Build a client from ``UNISAT_API`` and ``BITCOIN_NETWORK``.

        Raises:
            ValueError: If UNISAT_API is not set
        """
        return cls(
            http_client,
            get_required_env("UNISAT_API"),
            network=get_bitcoin_network(),
            fee_rate=fee_rate,
            max_retries=max_retries,
            base_delay=base_delay,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def create_order(
        self, payload: InscriptionPayload, receive_address: str
    ) -> OrderCreated:
        """Create an inscription order for ``payload``.

        Args:
            payload: Document to inscribe
            receive_address: Address that receives the inscription

        Returns:
            OrderCreated with the order id and where/how much to pay

        Raises:
            httpx.HTTPError: If the request fails
            UnisatAPIError: If UniSat rejects the order
        """
        body = {
            "receiveAddress": receive_address,
            "feeRate": self.fee_rate,
            "outputValue": self.output_value,
            "files": [
                {
                    "filename": inscription_filename(payload),
                    "dataURL": to_data_url(payload),
                }
            ],
        }

        response = await self.http_client.post(
            f"{self.base_url}/v2/inscribe/order/create",
            json=body,
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        order = OrderCreated.model_validate(self._unwrap(response.json()))

        logger.info(
            "UniSat order %s created: pay %s sats to %s",
            order.order_id,
            order.amount,
            order.pay_address,
        )
        return order

    async def get_order_status(self, order_id: str) -> OrderStatus:
        """Get the current status of an order.

        Raises:
            httpx.HTTPError: If the request still fails after retries
            UnisatAPIError: If UniSat answers with an error envelope
        """
        return await self._fetch_status(order_id)

    async def _fetch_status_once(self, order_id: str) -> OrderStatus:
        response = await self.http_client.get(
            f"{self.base_url}/v2/inscribe/order/{order_id}",
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return OrderStatus.model_validate(self._unwrap(response.json()))

    @staticmethod
    def _unwrap(envelope: dict[str, Any]) -> dict[str, Any]:
        code = envelope.get("code")
        if code != 0:
            raise UnisatAPIError(
                code if isinstance(code, int) else -1, str(envelope.get("msg"))
            )
        return envelope["data"]


__all__ = ["UnisatAPIError", "UnisatClient"]
