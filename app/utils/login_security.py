"""Redis-backed login throttling.

Two guards sit in front of ``POST /auth/login``:

* a fixed-window counter per client IP and per email address, and
* a lockout per email address after ``LOGIN_ATTEMPT_LIMIT`` consecutive
  failures, lasting ``LOGIN_LOCKOUT_MINUTES``.

Every guard fails open: when Redis is unreachable the attempt is allowed and a
warning is logged, so a cache outage never locks borrowers out.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.logging import mask_email
from app.core.settings import settings
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

KEY_PREFIX = "litefi:login"
WINDOW_SECONDS = 60


def _key(kind: str, identifier: str) -> str:
    return f"{KEY_PREFIX}:{kind}:{identifier.strip().lower()}"


def _lockout_seconds() -> int:
    return max(1, settings.login_lockout_minutes * 60)


def _too_many(message: str, retry_after: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "code": "rate_limited",
            "message": message,
            "details": {"retryAfterSeconds": retry_after},
        },
        headers={"Retry-After": str(retry_after)},
    )


async def rate_limit(
    key: str, limit: int, window_seconds: int = WINDOW_SECONDS, redis: Optional[Redis] = None
) -> None:
    redis = redis or get_redis_client()
    try:
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        count, _ = await pipe.execute()
    except RedisError as exc:
        logger.warning("Login rate limit skipped, redis unavailable: %s", exc)
        return
    if count > limit:
        raise _too_many("Too many login requests. Please slow down.", window_seconds)


async def check_lockout(email: str, redis: Optional[Redis] = None) -> None:
    redis = redis or get_redis_client()
    try:
        remaining = await redis.ttl(_key("lock", email))
    except RedisError as exc:
        logger.warning("Lockout check skipped, redis unavailable: %s", exc)
        return
    if remaining and remaining > 0:
        raise _too_many("Too many failed login attempts. Please try again later.", remaining)


async def enforce_login_limits(ip: str, email: str, redis: Optional[Redis] = None) -> None:
    limit = settings.rate_limit_per_minute
    await rate_limit(_key("ip", ip), limit, redis=redis)
    await rate_limit(_key("email", email), limit, redis=redis)
    await check_lockout(email, redis=redis)


async def record_login_attempt(email: str, success: bool, redis: Optional[Redis] = None) -> None:
    redis = redis or get_redis_client()
    fail_key = _key("fail", email)
    lock_key = _key("lock", email)
    try:
        if success:
            await redis.delete(fail_key, lock_key)
            return
        failures = await redis.incr(fail_key)
        await redis.expire(fail_key, _lockout_seconds())
        if failures >= settings.login_attempt_limit:
            await redis.setex(lock_key, _lockout_seconds(), 1)
            await redis.delete(fail_key)
            logger.warning("Locked out %s after %s failed logins", mask_email(email), failures)
    except RedisError as exc:
        logger.warning("Login attempt not recorded, redis unavailable: %s", exc)
