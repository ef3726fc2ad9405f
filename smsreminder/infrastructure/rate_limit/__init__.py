"""Rate limiter implementations."""

from smsreminder.infrastructure.rate_limit.redis_limiter import RedisRateLimiter

__all__ = ["RedisRateLimiter"]
