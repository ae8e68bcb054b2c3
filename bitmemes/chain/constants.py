"""Esplora endpoints."""

ESPLORA_PUBLIC_URLS = {
    "mainnet": "https://blockstream.info/api",
    "testnet": "https://blockstream.info/testnet/api",
}
"""Public Esplora API per network"""

ESPLORA_ENTERPRISE_URLS = {
    "mainnet": "https://enterprise.blockstream.info/api",
    "testnet": "https://enterprise.blockstream.info/testnet/api",
}
"""Authenticated Esplora API per network"""

ESPLORA_TOKEN_URL = (
    "https://login.blockstream.com/realms/blockstream-public"
    "/protocol/openid-connect/token"
)
"""OAuth client-credentials endpoint for the enterprise API"""

TOKEN_REFRESH_MARGIN = 30.0
"""Seconds before expiry at which the access token is refreshed"""


__all__ = [
    "ESPLORA_ENTERPRISE_URLS",
    "ESPLORA_PUBLIC_URLS",
    "ESPLORA_TOKEN_URL",
    "TOKEN_REFRESH_MARGIN",
]
