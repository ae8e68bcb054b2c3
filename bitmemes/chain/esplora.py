"""Esplora client: the chain height source for the competition scheduler."""

from __future__ import annotations

import time

import httpx

from bitmemes.chain.constants import (
    ESPLORA_ENTERPRISE_URLS,
    ESPLORA_PUBLIC_URLS,
    ESPLORA_TOKEN_URL,
    TOKEN_REFRESH_MARGIN,
)
from bitmemes.chain.models import AccessToken, BlockInfo
from bitmemes.helpers.config import get_bitcoin_network, get_optional_env
from bitmemes.helpers.constants import CHAIN_TIMEOUT, MAX_RETRIES, RETRY_BASE_DELAY
from bitmemes.helpers.http import retry_with_backoff
from bitmemes.helpers.logging import get_logger


logger = get_logger(__name__)


class EsploraClient:
    """Read-only Esplora API client for block heights and block identities.

    Works against the public API, or against the Blockstream enterprise API
    when OAuth client credentials are supplied. Every lookup is idempotent and
    retried with backoff on transient failures.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str | None = None,
        *,
        network: str = "testnet",
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str = ESPLORA_TOKEN_URL,
        timeout: float = CHAIN_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        """Initialize the client.

        Args:
            http_client: Shared HTTP client
            base_url: API root; defaults to the public or enterprise URL for
                ``network`` depending on whether credentials are given
            network: ``mainnet`` or ``testnet``
            client_id: Enterprise OAuth client id
            client_secret: Enterprise OAuth client secret
            token_url: OAuth token endpoint
            timeout: Per-request timeout in seconds
            max_retries: Attempts per lookup
            base_delay: Backoff base delay in seconds
        """
        self.http_client = http_client
        self.credentials = (
            (client_id, client_secret) if client_id and client_secret else None
        )
        urls = ESPLORA_ENTERPRISE_URLS if self.credentials else ESPLORA_PUBLIC_URLS
        self.base_url = (base_url or urls[network]).rstrip("/")
        self.token_url = token_url
        self.timeout = timeout

        self._access_token: str | None = None
        self._token_expires_at = 0.0

        self._get = retry_with_backoff(max_retries=max_retries, base_delay=base_delay)(
            self._get_once
        )

    @classmethod
    def from_env(cls, http_client: httpx.AsyncClient) -> EsploraClient:
        """Build a client from ``BITCOIN_NETWORK``, ``ESPLORA_API_URL``,
        ``ESPLORA_CLIENT_ID`` and ``ESPLORA_CLIENT_SECRET``."""
        return cls(
            http_client,
            base_url=get_optional_env("ESPLORA_API_URL"),
            network=get_bitcoin_network(),
            client_id=get_optional_env("ESPLORA_CLIENT_ID"),
            client_secret=get_optional_env("ESPLORA_CLIENT_SECRET"),
        )

    async def current_height(self) -> int:
        """Get the current chain tip height."""
        response = await self._get("/blocks/tip/height")
        return int(response.text.strip())

    async def block_hash_at(self, height: int) -> str:
        """Get the hash of the block at ``height``."""
        response = await self._get(f"/block-height/{height}")
        return response.text.strip()

    async def block(self, block_hash: str) -> BlockInfo:
        """Get a block by hash."""
        response = await self._get(f"/block/{block_hash}")
        return BlockInfo.model_validate(response.json())

    async def block_at(self, height: int) -> BlockInfo:
        """Get the block at ``height``.

        Example:
            ```python
            async with create_http_client() as http:
                chain = EsploraClient(http, network="mainnet")
                block = await chain.block_at(840_000)
                print(block.hash, block.timestamp)
            ```
        """
        return await self.block(await self.block_hash_at(height))

    async def _get_once(self, path: str) -> httpx.Response:
        response = await self.http_client.get(
            f"{self.base_url}{path}",
            headers=await self._auth_headers(),
            timeout=self.timeout,
        )

        if response.status_code == httpx.codes.UNAUTHORIZED and self.credentials:
            # Token revoked or expired early: refresh once and replay
            logger.info("Esplora token rejected, refreshing")
            self._access_token = None
            response = await self.http_client.get(
                f"{self.base_url}{path}",
                headers=await self._auth_headers(),
                timeout=self.timeout,
            )

        response.raise_for_status()
        return response

    async def _auth_headers(self) -> dict[str, str]:
        if not self.credentials:
            return {}
        if (
            self._access_token is None
            or time.monotonic() >= self._token_expires_at - TOKEN_REFRESH_MARGIN
        ):
            await self._refresh_token()
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _refresh_token(self) -> None:
        assert self.credentials is not None  # Checked by caller
        client_id, client_secret = self.credentials
        response = await self.http_client.post(
            self.token_url,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "client_credentials",
                "scope": "openid",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        token = AccessToken.model_validate(response.json())

        self._access_token = token.access_token
        self._token_expires_at = time.monotonic() + token.expires_in
        logger.info("Refreshed Esplora access token (expires in %ss)", token.expires_in)


__all__ = ["EsploraClient"]
