"""Bounded retry with exponential backoff for transient vendor failures.

Only AdapterErrors whose HTTP status is 429, 502, 503 or 504 are retried.
Everything else (auth failures, bad requests, malformed bodies) propagates
on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import AdapterError
from .settings import AdapterSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, settings: AdapterSettings, retry_after: float | None = None) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at backoff_max."""
    if retry_after is not None and retry_after >= 0:
        return min(retry_after, settings.backoff_max)
    return min(settings.backoff_base * (2**attempt), settings.backoff_max)


def parse_retry_after(value: str | None) -> float | None:
    """Read a numeric Retry-After header. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


async def call_with_retries(
    call: Callable[[], Awaitable[T]],
    settings: AdapterSettings,
    operation: str = "request",
) -> T:
    """Run ``call`` and retry it on transient vendor errors."""
    attempt = 0
    while True:
        try:
            return await call()
        except AdapterError as e:
            if not e.retryable or attempt >= settings.max_retries:
                raise
            wait = backoff_delay(attempt, settings, e.retry_after)
            logger.warning(
                "%s %s got HTTP %s, retrying in %.1fs (attempt %d/%d)",
                e.vendor_id,
                operation,
                e.http_status,
                wait,
                attempt + 1,
                settings.max_retries,
            )
            await asyncio.sleep(wait)
            attempt += 1
