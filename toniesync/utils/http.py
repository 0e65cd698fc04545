"""Retry helper for idempotent HTTP reads.

Writes against Tonie Cloud or the sync adapter are never retried here; a
duplicated PATCH or ``POST /sync`` could double-append chapters.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = 3
    backoff_seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        """Linear backoff before retry number ``attempt`` (1-based)."""
        return self.backoff_seconds * attempt


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it yields a non-5xx response or attempts run out.

    Transport errors and 5xx responses are retried; a 4xx response is returned
    to the caller untouched. The last error is re-raised once attempts are
    exhausted (a 5xx surfaces as ``httpx.HTTPStatusError``).
    """
    config = retry_config or RetryConfig()
    if config.attempts < 1:
        raise ValueError("RetryConfig.attempts must be at least 1")

    for attempt in range(1, config.attempts + 1):
        try:
            response = await func(*args, **kwargs)
            if response.status_code < 500:
                return response
            response.raise_for_status()
        except httpx.HTTPError as exc:
            if attempt == config.attempts:
                raise
            logger.info(
                "Retrying HTTP request",
                extra={"attempt": attempt, "error": str(exc)},
            )
            await asyncio.sleep(config.delay(attempt))

    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RetryConfig", "request_with_retry"]
