"""UniSat inscription order constants."""

UNISAT_API_URLS = {
    "mainnet": "https://open-api.unisat.io",
    "testnet": "https://open-api-testnet.unisat.io",
}
"""UniSat open API per network"""

ORDINALS_INSCRIPTION_URL = "https://ordinals.com/inscription/{inscription_id}"
"""Public explorer link for a finished inscription"""

INSCRIPTION_OUTPUT_VALUE = 546
"""Postage (sats) attached to the inscribed output"""

INSCRIPTION_PROJECT = "bitmemes"
INSCRIPTION_TYPE = "meme-coin-inscription"

# Order status vocabulary reported by UniSat
TERMINAL_SUCCESS_STATUSES = frozenset({
    "payment_withinscription",
    "minted",
    "confirmed",
    "sent",
    "completed",
})
"""Final statuses; the inscription id may still be propagating"""

TERMINAL_FAILURE_STATUSES = frozenset({
    "canceled",
    "failed",
    "timeout",
    "refunded",
})
"""Statuses after which the order will never inscribe"""

# Internal order_status markers written by the monitor
ORDER_PENDING = "pending"
ORDER_COMPLETED = "completed"
ORDER_STUCK_TIMEOUT_RESET = "stuck_timeout_auto_reset"
ORDER_STUCK_RESET = "stuck_auto_reset"

FAILED_ORDER_STATUSES = TERMINAL_FAILURE_STATUSES | {
    ORDER_STUCK_TIMEOUT_RESET,
    ORDER_STUCK_RESET,
}
"""Stored order statuses that are never polled again"""

CLOSED_ORDER_STATUSES = FAILED_ORDER_STATUSES | {ORDER_COMPLETED}
"""Stored order statuses that no longer block a new commit attempt"""


__all__ = [
    "CLOSED_ORDER_STATUSES",
    "FAILED_ORDER_STATUSES",
    "INSCRIPTION_OUTPUT_VALUE",
    "INSCRIPTION_PROJECT",
    "INSCRIPTION_TYPE",
    "ORDER_COMPLETED",
    "ORDER_PENDING",
    "ORDER_STUCK_RESET",
    "ORDER_STUCK_TIMEOUT_RESET",
    "ORDINALS_INSCRIPTION_URL",
    "TERMINAL_FAILURE_STATUSES",
    "TERMINAL_SUCCESS_STATUSES",
    "UNISAT_API_URLS",
]
