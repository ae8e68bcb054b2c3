"""Configuration management and environment variable utilities."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from bitmemes.helpers.constants import (
    BLOCK_POLL_INTERVAL,
    DEFAULT_FEE_RATE,
    EXPIRE_AFTER_BLOCKS,
    LEADERBOARD_MIN_BLOCKS,
    LEADERSHIP_WINDOW_BLOCKS,
    MAX_RETRIES,
    MIN_VOTES_TO_LEAD,
    ORDER_POLL_DELAY,
    ORDER_POLL_INTERVAL,
    PENDING_ORDER_WARNING_AFTER,
    RETRY_BASE_DELAY,
    STUCK_ORDER_TIMEOUT,
)


# Load environment variables from .env file
load_dotenv()

BITCOIN_NETWORKS = ("mainnet", "testnet")


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from bitmemes.helpers.config import get_required_env

        api_key = get_required_env("UNISAT_API")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Empty strings count as unset.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def get_optional_int_env(key: str) -> int | None:
    """Get an integer environment variable, or None when it is unset.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    raw = get_optional_env(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        msg = f"{key} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    value = get_optional_int_env(key)
    return default if value is None else value


def get_float_env(key: str, default: float) -> float:
    """Get a float environment variable.

    Raises:
        ValueError: If the variable is set but is not a number
    """
    raw = get_optional_env(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        msg = f"{key} must be a number, got {raw!r}"
        raise ValueError(msg) from None


def get_bitcoin_network(network: str | None = None) -> str:
    """Get the Bitcoin network name from parameter or ``BITCOIN_NETWORK``.

    Defaults to ``testnet``.

    Raises:
        ValueError: If the network is not mainnet or testnet
    """
    value = (network or get_optional_env("BITCOIN_NETWORK", "testnet") or "").lower()
    if value not in BITCOIN_NETWORKS:
        msg = f"BITCOIN_NETWORK must be one of {', '.join(BITCOIN_NETWORKS)}, got {value!r}"
        raise ValueError(msg)
    return value


def get_receive_address() -> str | None:
    """Get the address inscriptions are delivered to, if configured."""
    return get_optional_env("UNISAT_RECEIVE_ADDRESS") or get_optional_env(
        "PLATFORM_WALLET_ADDRESS"
    )


class CompetitionSettings(BaseModel):
    """Tunable rules and cadences for the scheduler and the order monitor."""

    model_config = ConfigDict(frozen=True)

    block_poll_interval: float = Field(default=BLOCK_POLL_INTERVAL, gt=0)
    order_poll_interval: float = Field(default=ORDER_POLL_INTERVAL, gt=0)
    order_poll_delay: float = Field(default=ORDER_POLL_DELAY, ge=0)
    expire_after_blocks: int = Field(default=EXPIRE_AFTER_BLOCKS, ge=1)
    leaderboard_min_blocks: int = Field(default=LEADERBOARD_MIN_BLOCKS, ge=1)
    leadership_window_blocks: int = Field(default=LEADERSHIP_WINDOW_BLOCKS, ge=0)
    min_votes_to_lead: int = Field(default=MIN_VOTES_TO_LEAD, ge=0)
    stuck_order_timeout: float = Field(default=STUCK_ORDER_TIMEOUT, gt=0)
    pending_order_warning_after: float = Field(
        default=PENDING_ORDER_WARNING_AFTER, gt=0
    )
    provider_max_retries: int = Field(default=MAX_RETRIES, ge=1)
    provider_backoff_base: float = Field(default=RETRY_BASE_DELAY, ge=0)
    start_block: int | None = Field(default=None, ge=0)
    fee_rate: int = Field(default=DEFAULT_FEE_RATE, ge=1)
    receive_address: str | None = None

    @classmethod
    def from_env(cls) -> CompetitionSettings:
        """Build settings from environment variables, falling back to defaults.

        Example:
            ```python
            settings = CompetitionSettings.from_env()
            scheduler = CompetitionScheduler(..., settings=settings)
            ```
        """
        return cls(
            block_poll_interval=get_float_env("BLOCK_POLL_INTERVAL", BLOCK_POLL_INTERVAL),
            order_poll_interval=get_float_env("ORDER_POLL_INTERVAL", ORDER_POLL_INTERVAL),
            order_poll_delay=get_float_env("ORDER_POLL_DELAY", ORDER_POLL_DELAY),
            expire_after_blocks=get_int_env("EXPIRE_AFTER_BLOCKS", EXPIRE_AFTER_BLOCKS),
            leaderboard_min_blocks=get_int_env(
                "LEADERBOARD_MIN_BLOCKS", LEADERBOARD_MIN_BLOCKS
            ),
            leadership_window_blocks=get_int_env(
                "LEADERSHIP_WINDOW_BLOCKS", LEADERSHIP_WINDOW_BLOCKS
            ),
            min_votes_to_lead=get_int_env("MIN_VOTES_TO_LEAD", MIN_VOTES_TO_LEAD),
            stuck_order_timeout=get_float_env("STUCK_ORDER_TIMEOUT", STUCK_ORDER_TIMEOUT),
            pending_order_warning_after=get_float_env(
                "PENDING_ORDER_WARNING_AFTER", PENDING_ORDER_WARNING_AFTER
            ),
            provider_max_retries=get_int_env("PROVIDER_MAX_RETRIES", MAX_RETRIES),
            provider_backoff_base=get_float_env(
                "PROVIDER_BACKOFF_BASE", RETRY_BASE_DELAY
            ),
            start_block=get_optional_int_env("START_BLOCK"),
            fee_rate=get_int_env("INSCRIPTION_FEE_RATE", DEFAULT_FEE_RATE),
            receive_address=get_receive_address(),
        )


__all__ = [
    "CompetitionSettings",
    "get_bitcoin_network",
    "get_float_env",
    "get_int_env",
    "get_optional_env",
    "get_optional_int_env",
    "get_receive_address",
    "get_required_env",
]
