"""
Rate Limiter
Fixed-window counters backed by Redis INCR + EXPIRE

A window starts on the first hit (count == 1) and is the only place an
expiry is set, so later hits never extend it. Bursts straddling a window
boundary can admit up to 2x the limit.
"""
import logging
from dataclasses import dataclass

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after_seconds: int
    total_hits: int


@dataclass
class AiQuotaResult:
    """
    Combined per-minute / per-day quota

    `remaining` is clamped for display; `raw_remaining` is the unclamped
    minimum of both windows and is only used for logging.
    """
    allowed: bool
    remaining: int
    raw_remaining: int
    retry_after_seconds: int


class RateLimiter:
    """Quota enforcement over an injected async Redis client"""

    KEY_PREFIX = "ratelimit"

    def __init__(
        self,
        redis_client,
        minute_limit: int = 5,
        minute_window: int = 60,
        day_limit: int = 50,
        day_window: int = 86400
    ):
        self.redis = redis_client
        self.minute_limit = minute_limit
        self.minute_window = minute_window
        self.day_limit = day_limit
        self.day_window = day_window

    async def _hit(self, key: str, window_seconds: int) -> int:
        count = int(await self.redis.incr(key))
        if count == 1:
            await self.redis.expire(key, window_seconds)
        return count

    async def _retry_after(self, key: str, window_seconds: int) -> int:
        try:
            ttl = await self.redis.ttl(key)
        except RedisError as e:
            logger.warning(f"⚠️ TTL read failed for {key}, using window length: {e}")
            return window_seconds

        # -1: no expiry, -2: key vanished between INCR and TTL
        if ttl is None or int(ttl) <= 0:
            return window_seconds
        return int(ttl)

    async def consume(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """
        Record one hit against `key` and report whether it fits the quota

        Store failures propagate to the caller.
        """
        redis_key = f"{self.KEY_PREFIX}:{key}"
        count = await self._hit(redis_key, window_seconds)

        if count > limit:
            retry_after = await self._retry_after(redis_key, window_seconds)
            logger.info(
                f"🚫 Rate limit exceeded - Key: {key}, "
                f"Hits: {count}/{limit}, Retry after: {retry_after}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                retry_after_seconds=retry_after,
                total_hits=count
            )

        return RateLimitResult(
            allowed=True,
            remaining=max(0, limit - count),
            retry_after_seconds=0,
            total_hits=count
        )

    async def check_ai_explanation_quota(self, identity: str) -> AiQuotaResult:
        """Consume one hit from both the per-minute and per-day AI windows"""
        minute_key = f"ai:explanation:{identity}:minute"
        day_key = f"ai:explanation:{identity}:day"

        minute = await self.consume(minute_key, self.minute_limit, self.minute_window)
        day = await self.consume(day_key, self.day_limit, self.day_window)

        raw_remaining = min(
            self.minute_limit - minute.total_hits,
            self.day_limit - day.total_hits
        )
        allowed = minute.allowed and day.allowed
        retry_after = max(
            minute.retry_after_seconds if not minute.allowed else 0,
            day.retry_after_seconds if not day.allowed else 0
        )

        logger.debug(
            f"📊 AI quota for {identity}: minute {minute.total_hits}/{self.minute_limit}, "
            f"day {day.total_hits}/{self.day_limit}, raw remaining {raw_remaining}"
        )

        return AiQuotaResult(
            allowed=allowed,
            remaining=max(0, raw_remaining),
            raw_remaining=raw_remaining,
            retry_after_seconds=retry_after
        )
