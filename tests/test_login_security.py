import pytest
from fastapi import HTTPException
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.settings import settings
from app.utils import login_security


class MemoryRedis:
    """Just enough of redis.asyncio.Redis for the login guards."""

    def __init__(self) -> None:
        self.values: dict[str, int] = {}
        self.expiries: dict[str, int] = {}

    def pipeline(self):
        return _Pipeline(self)

    async def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True

    async def setex(self, key, seconds, value):
        self.values[key] = value
        self.expiries[key] = seconds
        return True

    async def ttl(self, key):
        if key not in self.values:
            return -2
        return self.expiries.get(key, -1)

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.expiries.pop(key, None)


class _Pipeline:
    def __init__(self, redis: MemoryRedis) -> None:
        self.redis = redis
        self.calls = []

    def incr(self, key):
        self.calls.append(("incr", key))

    def expire(self, key, seconds):
        self.calls.append(("expire", key, seconds))

    async def execute(self):
        results = []
        for name, *args in self.calls:
            results.append(await getattr(self.redis, name)(*args))
        return results


class BrokenRedis:
    def pipeline(self):
        raise RedisConnectionError("connection refused")

    async def ttl(self, key):
        raise RedisConnectionError("connection refused")

    async def incr(self, key):
        raise RedisConnectionError("connection refused")

    async def delete(self, *keys):
        raise RedisConnectionError("connection refused")


@pytest.fixture
def redis():
    return MemoryRedis()


@pytest.fixture(autouse=True)
def _limits(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_per_minute", 3)
    monkeypatch.setattr(settings, "login_attempt_limit", 2)
    monkeypatch.setattr(settings, "login_lockout_minutes", 15)


async def test_requests_within_budget_pass(redis):
    for _ in range(3):
        await login_security.enforce_login_limits("10.0.0.1", "Ada@Example.com", redis=redis)

    assert redis.values["litefi:login:ip:10.0.0.1"] == 3
    assert redis.values["litefi:login:email:ada@example.com"] == 3


async def test_per_ip_budget_is_enforced(redis):
    for index in range(3):
        await login_security.enforce_login_limits("10.0.0.1", f"u{index}@example.com", redis=redis)

    with pytest.raises(HTTPException) as excinfo:
        await login_security.enforce_login_limits("10.0.0.1", "fresh@example.com", redis=redis)

    assert excinfo.value.status_code == 429
    assert excinfo.value.detail["code"] == "rate_limited"
    assert excinfo.value.headers["Retry-After"] == "60"


async def test_repeated_failures_lock_the_account(redis):
    await login_security.record_login_attempt("ada@example.com", success=False, redis=redis)
    await login_security.check_lockout("ada@example.com", redis=redis)

    await login_security.record_login_attempt("ada@example.com", success=False, redis=redis)

    with pytest.raises(HTTPException) as excinfo:
        await login_security.check_lockout("ADA@example.com", redis=redis)
    assert excinfo.value.status_code == 429
    assert excinfo.value.detail["details"] == {"retryAfterSeconds": 900}
    assert "litefi:login:fail:ada@example.com" not in redis.values


async def test_successful_login_clears_failures(redis):
    await login_security.record_login_attempt("ada@example.com", success=False, redis=redis)

    await login_security.record_login_attempt("ada@example.com", success=True, redis=redis)

    assert redis.values == {}
    await login_security.check_lockout("ada@example.com", redis=redis)


async def test_guards_fail_open_without_redis():
    broken = BrokenRedis()

    await login_security.enforce_login_limits("10.0.0.1", "ada@example.com", redis=broken)
    await login_security.record_login_attempt("ada@example.com", success=False, redis=broken)
