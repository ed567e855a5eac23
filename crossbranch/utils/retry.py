"""Bounded retry with exponential backoff for hosting platform calls."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import requests
from github import GithubException, RateLimitExceededException

from ..exceptions import PlatformError, PlatformUnavailableError
from .logging import get_logger

T = TypeVar("T")

# HTTP statuses worth retrying
TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


def graphql_rate_limited(data: Any) -> bool:
    """GraphQL reports rate limiting as an error entry, not an HTTP status."""
    if not isinstance(data, dict):
        return False
    return any(
        isinstance(err, dict) and err.get("type") == "RATE_LIMITED"
        for err in data.get("errors") or []
    )


def is_transient(error: Exception) -> bool:
    """Return True for rate limiting, server errors and network failures."""
    if isinstance(error, RateLimitExceededException):
        return True
    if isinstance(error, GithubException):
        if error.status in TRANSIENT_STATUSES or graphql_rate_limited(error.data):
            return True
        # Secondary rate limits come back as 403
        return error.status == 403 and "rate limit" in str(error).lower()
    return isinstance(
        error,
        (requests.exceptions.ConnectionError, requests.exceptions.Timeout)
    )


async def with_retries(
    operation: str,
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Run an async platform call, retrying transient failures.

    Args:
        operation: Human readable name used in logs and errors
        call: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, doubled each time
        max_delay: Upper bound for a single delay
        sleep: Sleep coroutine (tests pass a fake)

    Returns:
        Whatever ``call`` returns

    Raises:
        PlatformUnavailableError: If every attempt failed transiently
        PlatformError: On the first non-transient platform failure
    """
    logger = get_logger()
    sleep = sleep or asyncio.sleep

    for attempt in range(max_retries + 1):
        try:
            return await call()
        except (GithubException, requests.exceptions.RequestException) as e:
            if not is_transient(e):
                raise PlatformError(f"{operation} failed: {e}") from e

            if attempt >= max_retries:
                logger.error(
                    f"{operation} failed after {attempt + 1} attempts: {e}"
                )
                raise PlatformUnavailableError(operation, attempt + 1, e) from e

            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(
                f"{operation} failed transiently (attempt {attempt + 1}/"
                f"{max_retries + 1}), retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)

    raise AssertionError("unreachable")
