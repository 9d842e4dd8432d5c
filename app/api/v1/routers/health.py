from fastapi import APIRouter, Request

from app.core.health import health_payload, live_payload, ready_payload
from app.core.limiter import limiter

router = APIRouter(tags=["health"])


def _storage(request: Request):
    return getattr(request.app.state, "document_storage", None)


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Database, Redis and document storage readiness")
@limiter.exempt
async def health_ready(request: Request) -> dict:
    return await ready_payload(_storage(request))


@router.get("/health", summary="Readiness check")
@limiter.exempt
async def read_health(request: Request) -> dict:
    return await health_payload(_storage(request))
