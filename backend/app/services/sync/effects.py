"""
Best-effort side effects.

Stat counters and cache invalidation ride along with a primary write but
must never change its outcome: failures are logged and dropped here.
"""

import logging
from typing import Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(label: str, awaitable: Awaitable[T]) -> Optional[T]:
    try:
        return await awaitable
    except Exception as e:
        logger.warning("%s failed (ignored): %s", label, e)
        return None
