"""
Exponential backoff for JSON-RPC reads.

Only transport-level failures are retried. Contract reverts, ABI errors and
4xx answers from the node (other than 429) are raised on the first attempt.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status == 429 or exc.status >= 500
    return isinstance(exc, TRANSIENT_ERRORS)


@dataclass
class RetryPolicy:
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)

    async def run(self, label: str, call: Callable[[], Awaitable[T]]) -> T:
        """Await call(), retrying transient failures up to max_retries times."""
        attempt = 0
        while True:
            try:
                return await call()
            except TRANSIENT_ERRORS as exc:
                if not is_transient(exc):
                    raise
                if attempt >= self.max_retries:
                    logger.warning(
                        "%s: giving up after %d attempts: %s", label, attempt + 1, exc
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.debug(
                    "%s: attempt %d failed (%s), retrying in %.1fs",
                    label,
                    attempt + 1,
                    type(exc).__name__,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
