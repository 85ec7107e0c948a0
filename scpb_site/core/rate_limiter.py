"""
scpb_site/core/rate_limiter.py — Rate limiting
Two layers:
  * SlidingWindowLimiter: per-IP sliding-window limits for the public forms,
    counted in a Redis sorted set so every app instance shares one view.
  * slowapi `limiter`: in-process fixed limits for the admin webhooks,
    content reads and health probe.
"""
from __future__ import annotations

import asyncio
import math
import time
import uuid
from typing import Callable, Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError
from slowapi import Limiter
from starlette.requests import Request

from scpb_site.config import RateLimitSettings, get_settings
from scpb_site.core import logging as site_logging
from scpb_site.core.client_ip import identify
from scpb_site.core.errors import LimiterStoreUnavailable
from scpb_site.models import RateLimitResult, RatePolicy, RouteClass

Clock = Callable[[], float]

settings = get_settings()

# ── Form limits per client IP ─────────────────────────────────────────────────

ROUTE_POLICIES: dict[RouteClass, RatePolicy] = {
    RouteClass.CONTACT: RatePolicy(limit=5, window_seconds=3600, prefix="ratelimit:contact"),
    RouteClass.RFQ: RatePolicy(limit=10, window_seconds=3600, prefix="ratelimit:rfq"),
    RouteClass.NEWSLETTER: RatePolicy(limit=3, window_seconds=3600, prefix="ratelimit:newsletter"),
}


def policies_from_settings(rate_limits: RateLimitSettings) -> dict[RouteClass, RatePolicy]:
    """Build the policy table from configuration, keeping the fixed key prefixes."""
    policies = {}
    for route_class, default in ROUTE_POLICIES.items():
        configured = getattr(rate_limits, route_class.value)
        policies[route_class] = RatePolicy(
            limit=configured.limit,
            window_seconds=configured.window_seconds,
            prefix=default.prefix,
        )
    return policies


class SlidingWindowLimiter:
    """
    Sliding-window limiter over a Redis sorted set per (route class, identity).

    Members are unique per request and scored with the acceptance time.
    Each check trims, adds, counts and refreshes the key TTL inside a single
    MULTI/EXEC, so concurrent checks for the same identity cannot both be
    admitted past the limit. Rejected requests are removed again: the set
    only holds accepted requests.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        policies: Optional[dict[RouteClass, RatePolicy]] = None,
        clock: Clock = time.time,
        timeout: Optional[float] = None,
    ) -> None:
        self._redis = redis
        self._policies = dict(policies or ROUTE_POLICIES)
        self._clock = clock
        self._timeout = timeout

    def policy(self, route_class: RouteClass) -> RatePolicy:
        return self._policies[RouteClass(route_class)]

    @staticmethod
    def key_for(policy: RatePolicy, identity: str) -> str:
        return f"{policy.prefix}:{identity}"

    async def check(self, identity: str, route_class: RouteClass) -> RateLimitResult:
        """
        Record one request for identity and decide whether it is allowed.
        Raises LimiterStoreUnavailable on any store error or timeout.
        """
        policy = self.policy(route_class)
        try:
            result = await self._with_timeout(self._check(identity, policy))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise LimiterStoreUnavailable(
                "Rate limit store unavailable",
                details={"route_class": policy.prefix, "reason": type(exc).__name__},
            ) from exc

        site_logging.log_rate_limit_decision(
            route_class=RouteClass(route_class).value,
            allowed=result.allowed,
            remaining=result.remaining,
            retry_after_seconds=result.retry_after_seconds,
        )
        return result

    async def reset(self, identity: str, route_class: RouteClass) -> None:
        """Forget every recorded request for identity in this route class."""
        policy = self.policy(route_class)
        try:
            await self._with_timeout(self._redis.delete(self.key_for(policy, identity)))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise LimiterStoreUnavailable("Rate limit store unavailable") from exc

    async def _with_timeout(self, awaitable):
        if self._timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._timeout)

    async def _check(self, identity: str, policy: RatePolicy) -> RateLimitResult:
        key = self.key_for(policy, identity)
        now = self._clock()
        window_start = now - policy.window_seconds
        member = f"{now}-{uuid.uuid4().hex}"

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", f"({window_start}")
            pipe.zadd(key, {member: now})
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            pipe.expire(key, policy.window_seconds)
            _, _, count, oldest, _ = await pipe.execute()

        if count <= policy.limit:
            return RateLimitResult(
                allowed=True,
                remaining=policy.limit - count,
                retry_after_seconds=0,
                limit=policy.limit,
            )

        try:
            await self._redis.zrem(key, member)
        except (RedisError, OSError) as exc:
            # The member expires with the key; the request stays denied
            logger.warning(f"Rate limiter could not drop denied request from {policy.prefix}: {exc}")
        oldest_score = oldest[0][1] if oldest else now
        retry_after = max(0, math.ceil(oldest_score + policy.window_seconds - now))
        return RateLimitResult(
            allowed=False,
            remaining=0,
            retry_after_seconds=retry_after,
            limit=policy.limit,
        )


# ──────────────────────────────────────────────────────────────────────────────
# slowapi limiter for webhooks, reads and health
# ──────────────────────────────────────────────────────────────────────────────

def client_key(request: Request) -> str:
    return identify(request.headers)


# Single shared limiter instance, imported by main.py and routers
limiter = Limiter(key_func=client_key)

RATE_LIMITS = {
    # Secret-protected cache webhooks: blunt secret guessing
    "admin": settings.admin_rate_limit,
    # Read endpoints are cached, keep generous
    "content": "120/minute",
    "health": "30/minute",
}
