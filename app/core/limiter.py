from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings

# keys on request.client.host, which TrustedProxiesMiddleware rewrites behind a proxy
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)


def auth_rate_limit() -> str:
    return f"{settings.rate_limit_per_minute}/minute"


def otp_rate_limit() -> str:
    """Endpoints that send a code by email get a tighter budget."""
    return f"{settings.otp_rate_limit_per_minute}/minute"


__all__ = ["limiter", "auth_rate_limit", "otp_rate_limit"]
