"""
Client-side throttle for JSON-RPC calls.

Public RPC endpoints (Infura, Alchemy, public Sepolia nodes) reject bursts
with HTTP 429; the throttle keeps the process under a calls-per-period cap.
"""

import asyncio
import time
from collections import deque


class RateLimiter:
    """
    Sliding-window limiter shared by every call through one ChainReader.

    Usage:
        limiter = RateLimiter(max_calls=20, period=1.0)
        async with limiter:
            receipt = await w3.eth.get_transaction_receipt(tx_hash)
    """

    def __init__(self, max_calls: int, period: float = 1.0):
        if max_calls < 1:
            raise ValueError("max_calls must be >= 1")
        self.max_calls = max_calls
        self.period = period
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        while self._calls and self._calls[0] <= now - self.period:
            self._calls.popleft()

    async def wait(self) -> None:
        """Block until one more call fits in the window, then record it."""
        async with self._lock:
            while True:
                now = time.monotonic()
                self._expire(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return
                await asyncio.sleep(self._calls[0] + self.period - now)

    @property
    def in_window(self) -> int:
        self._expire(time.monotonic())
        return len(self._calls)

    async def __aenter__(self):
        await self.wait()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(name: str, max_calls: int, period: float = 1.0) -> RateLimiter:
    """Process-wide limiter per RPC endpoint name."""
    if name not in _limiters:
        _limiters[name] = RateLimiter(max_calls, period)
    return _limiters[name]
