"""Retry/backoff for operations that fail with ``TransientError``."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from crm_api.core.errors import TransientError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def retry_transient(
    func: Callable[[], Awaitable[T]],
    *,
    retry_config: RetryConfig | None = None,
) -> T:
    """Call ``func`` until it succeeds, retrying only transient failures.

    Hard failures propagate on the first occurrence.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        try:
            return await func()
        except TransientError as exc:
            attempt += 1
            if attempt >= config.attempts:
                raise
            delay = config.backoff_seconds * attempt
            logger.warning(
                "Transient failure (%s), retrying in %.1fs (attempt %d/%d)",
                exc,
                delay,
                attempt + 1,
                config.attempts,
            )
            await asyncio.sleep(delay)


__all__ = ["RetryConfig", "retry_transient"]
