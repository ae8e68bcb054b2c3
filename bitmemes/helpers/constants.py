"""Common configuration constants used across the application."""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

CHAIN_TIMEOUT = 10.0
"""Timeout for chain height and block lookups in seconds"""

# Retry Configuration
MAX_RETRIES = 3
"""Default maximum number of attempts for a retried call"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

RETRY_JITTER = 0.25
"""Random extra delay as a fraction of the computed backoff"""

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
"""HTTP status codes treated as transient (rate limiting and 5xx)"""

# Scheduling Defaults
BLOCK_POLL_INTERVAL = 120.0
"""Seconds between competition scheduler ticks"""

ORDER_POLL_INTERVAL = 30.0
"""Seconds between order monitor cycles"""

ORDER_POLL_DELAY = 0.5
"""Pause between consecutive provider status calls in one cycle"""

# Competition Rules
EXPIRE_AFTER_BLOCKS = 5
"""Blocks an active proposal may wait for leadership before expiring"""

LEADERBOARD_MIN_BLOCKS = 2
"""Blocks a leader must hold #1 (inclusive) before it is committed"""

LEADERSHIP_WINDOW_BLOCKS = 5
"""Offset from the leadership start block to the informational expiration block"""

MIN_VOTES_TO_LEAD = 1
"""Minimum total votes required to take the lead"""

# Order Reconciliation
STUCK_ORDER_TIMEOUT = 3600.0
"""Seconds an order may sit in a final status without an inscription id"""

PENDING_ORDER_WARNING_AFTER = 6 * 3600.0
"""Seconds after which an in-progress order is logged as slow"""

# Inscription Defaults
DEFAULT_FEE_RATE = 3
"""Default inscription fee rate in sat/vB"""


__all__ = [
    "BLOCK_POLL_INTERVAL",
    "CHAIN_TIMEOUT",
    "DEFAULT_FEE_RATE",
    "DEFAULT_TIMEOUT",
    "EXPIRE_AFTER_BLOCKS",
    "LEADERBOARD_MIN_BLOCKS",
    "LEADERSHIP_WINDOW_BLOCKS",
    "MAX_RETRIES",
    "MIN_VOTES_TO_LEAD",
    "ORDER_POLL_DELAY",
    "ORDER_POLL_INTERVAL",
    "PENDING_ORDER_WARNING_AFTER",
    "RETRYABLE_STATUS_CODES",
    "RETRY_BASE_DELAY",
    "RETRY_JITTER",
    "RETRY_MAX_DELAY",
    "STUCK_ORDER_TIMEOUT",
]
