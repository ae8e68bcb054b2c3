"""HTTP client utilities and helpers."""

from __future__ import annotations

from asyncio import sleep
from contextlib import asynccontextmanager
from functools import wraps
import random

from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import httpx

from bitmemes.helpers.constants import (
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_JITTER,
    RETRY_MAX_DELAY,
    RETRYABLE_STATUS_CODES,
)
from bitmemes.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def is_transient_http_error(error: BaseException) -> bool:
    """Return True for errors worth retrying.

    Timeouts and transport failures are transient, as are responses with a
    rate-limit or 5xx status. Any other HTTP status (bad request, not found,
    unauthorized) and any non-HTTP exception is treated as permanent.

    Example:
        >>> is_transient_http_error(httpx.ConnectTimeout("slow"))
        True
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, httpx.TransportError)


def backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    jitter: float = RETRY_JITTER,
) -> float:
    """Delay before the retry that follows ``attempt`` (0-based).

    Exponential with a cap, plus up to ``jitter * delay`` of random extra wait.
    """
    delay = min(base_delay * (2**attempt), max_delay)
    if jitter > 0:
        delay += random.uniform(0, delay * jitter)  # noqa: S311
    return delay


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    jitter: float = RETRY_JITTER,
    retry_on: Callable[[BaseException], bool] = is_transient_http_error,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with exponential backoff and jitter.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries (default: 60.0)
        jitter: Random extra delay as a fraction of the backoff (default: 0.25)
        retry_on: Predicate deciding whether an exception is retried
            (default: rate limits, 5xx, timeouts and transport errors)
        log_errors: Whether to log retry attempts (default: True)

    Returns:
        Decorated function that retries transient failures and re-raises
        everything else immediately

    Example:
        ```python
        from bitmemes.helpers.http import retry_with_backoff

        @retry_with_backoff(max_retries=3, base_delay=2.0)
        async def fetch_order(client: httpx.AsyncClient, url: str) -> dict:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

        # Will retry a 503 up to 3 times with delays of ~2s, ~4s
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not retry_on(e):
                        raise
                    last_exception = e
                    if log_errors and attempt < max_retries - 1:
                        if isinstance(e, httpx.TimeoutException):
                            logger.warning(
                                "%s timeout (attempt %d/%d)",
                                func.__name__,
                                attempt + 1,
                                max_retries,
                            )
                        else:
                            logger.warning(
                                "%s HTTP error (attempt %d/%d): %s",
                                func.__name__,
                                attempt + 1,
                                max_retries,
                                e,
                            )

                # Don't sleep after the last attempt
                if attempt < max_retries - 1:
                    await sleep(backoff_delay(attempt, base_delay, max_delay, jitter))

            if last_exception:
                if log_errors:
                    logger.error(
                        "%s failed after %d attempts", func.__name__, max_retries
                    )
                raise last_exception

            msg = f"{func.__name__} failed without exception"
            raise RuntimeError(msg)

        return wrapper

    return decorator


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance
    """
    return httpx.AsyncClient(timeout=timeout, **kwargs)


@asynccontextmanager
async def log_and_suppress_errors(
    operation_name: str,
    *,
    log_level: str = "warning",
    suppress: bool = True,
) -> AsyncIterator[None]:
    """Context manager to log and optionally suppress errors.

    Args:
        operation_name: Description of the operation for logging
        log_level: Logging level ("debug", "info", "warning", "error")
        suppress: If True, suppress exceptions; if False, re-raise after logging

    Yields:
        None

    Example:
        ```python
        async with log_and_suppress_errors("launch webhook"):
            await notifier.notify_leadership_complete(proposal)
        ```
    """
    try:
        yield
    except Exception as e:
        log_method = getattr(logger, log_level, logger.warning)
        log_method("%s failed: %s", operation_name, e)

        if not suppress:
            raise


__all__ = [
    "backoff_delay",
    "create_http_client",
    "is_transient_http_error",
    "log_and_suppress_errors",
    "retry_with_backoff",
]
