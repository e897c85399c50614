"""Per-client rate limiting for the inbound webhook endpoints."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

import redis
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from leadhub.config import settings

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class WebhookRateLimiter:
    """Moving-window limiter keyed by an arbitrary string (client IP)."""

    def __init__(self, limit: str = "100/minute", storage_uri: str = "memory://"):
        self.limit = parse(limit)
        self.storage_uri = storage_uri
        self._limiter = MovingWindowRateLimiter(storage_from_string(storage_uri))

    def hit(self, key: str) -> RateLimitDecision:
        try:
            if self._limiter.hit(self.limit, "webhooks", key):
                return RateLimitDecision(allowed=True)
            stats = self._limiter.get_window_stats(self.limit, "webhooks", key)
        except redis.RedisError as exc:
            # Fail open when the storage backend is unreachable.
            logger.warning("webhook_rate_limit_storage_error key=%s error=%s", key, exc)
            return RateLimitDecision(allowed=True)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        logger.info("webhook_rate_limited key=%s retry_after=%s", key, retry_after)
        return RateLimitDecision(allowed=False, retry_after=retry_after)

    def reset(self) -> None:
        self._limiter.storage.reset()


def build_webhook_rate_limiter() -> WebhookRateLimiter:
    return WebhookRateLimiter(
        limit=settings.webhook_rate_limit,
        storage_uri=settings.rate_limit_storage_uri,
    )


_webhook_rate_limiter: WebhookRateLimiter | None = None


def get_rate_limiter() -> WebhookRateLimiter:
    """FastAPI dependency; tests override it with their own limiter."""
    global _webhook_rate_limiter
    if _webhook_rate_limiter is None:
        _webhook_rate_limiter = build_webhook_rate_limiter()
    return _webhook_rate_limiter
