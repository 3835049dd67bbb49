"""
Throttling and retry for calls to the chain node.
"""

from app.services.rate_limiting.limiter import RateLimiter, get_rate_limiter
from app.services.rate_limiting.retry import RetryPolicy, is_transient

__all__ = ["RateLimiter", "RetryPolicy", "get_rate_limiter", "is_transient"]
