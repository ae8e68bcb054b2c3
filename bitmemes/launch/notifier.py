"""Leadership-complete notifications (token launch trigger)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from typing import TYPE_CHECKING

from bitmemes.helpers.config import get_optional_env
from bitmemes.helpers.constants import DEFAULT_TIMEOUT
from bitmemes.helpers.logging import get_logger


if TYPE_CHECKING:
    import httpx

    from bitmemes.competition.models import Proposal


logger = get_logger(__name__)


class LaunchNotifier(ABC):
    """Side effect fired once a proposal has been sent for inscription."""

    @abstractmethod
    async def notify_leadership_complete(self, proposal: Proposal) -> None:
        """Announce that ``proposal`` won and is being inscribed."""


class LoggingLaunchNotifier(LaunchNotifier):
    """Notifier used when no webhook is configured."""

    async def notify_leadership_complete(self, proposal: Proposal) -> None:
        logger.info(
            "Leadership complete for proposal %d (%s), no launch webhook configured",
            proposal.id,
            proposal.ticker,
        )


class WebhookLaunchNotifier(LaunchNotifier):
    """POST the winning proposal as JSON to a launch webhook."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not url:
            msg = "Launch webhook URL cannot be empty"
            raise ValueError(msg)
        self.http_client = http_client
        self.url = url
        self.timeout = timeout

    async def notify_leadership_complete(self, proposal: Proposal) -> None:
        """Send the proposal snapshot.

        Raises:
            httpx.HTTPError: If the webhook call fails
        """
        response = await self.http_client.post(
            self.url,
            json={
                "event": "leadership_complete",
                "proposal": proposal.model_dump(mode="json"),
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info(
            "Launch webhook notified for proposal %d (%s)", proposal.id, proposal.ticker
        )


def notifier_from_env(http_client: httpx.AsyncClient) -> LaunchNotifier:
    """Webhook notifier when ``LAUNCH_WEBHOOK_URL`` is set, logging otherwise."""
    url = get_optional_env("LAUNCH_WEBHOOK_URL")
    if url:
        return WebhookLaunchNotifier(http_client, url)
    return LoggingLaunchNotifier()


__all__ = [
    "LaunchNotifier",
    "LoggingLaunchNotifier",
    "WebhookLaunchNotifier",
    "notifier_from_env",
]
