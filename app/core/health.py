from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.db.session import engine
from app.services.storage.adapter import StorageAdapter
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"

# email is reported but never blocks readiness; delivery is best-effort
REQUIRED_CHECKS = ("database", "redis", "storage")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except (SQLAlchemyError, OSError) as exc:
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        redis = get_redis_client()
        await redis.ping()
        return {"status": "ok"}
    except (RedisError, OSError) as exc:
        return {"status": "error", "error": str(exc)}


def _check_storage(storage: Optional[StorageAdapter]) -> dict[str, str]:
    if storage is None:
        return {
            "status": "error",
            "provider": settings.storage_provider,
            "error": "document storage is not configured",
        }
    return {"status": "ok", "provider": storage.provider}


def _check_email() -> dict[str, str]:
    if not settings.zeptomail_token:
        return {"status": "disabled"}
    return {"status": "ok"}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(checks[name].get("status") == "ok" for name in REQUIRED_CHECKS if name in checks)
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload(storage: Optional[StorageAdapter] = None) -> dict[str, Any]:
    checks = {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await _check_db(),
        "redis": await _check_redis(),
        "storage": _check_storage(storage),
        "email": _check_email(),
    }
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def health_payload(storage: Optional[StorageAdapter] = None) -> dict[str, Any]:
    return await ready_payload(storage)
