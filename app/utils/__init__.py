from app.utils.login_security import enforce_login_limits, record_login_attempt
from app.utils.redis_client import close_redis_client, get_redis_client

__all__ = [
    "close_redis_client",
    "enforce_login_limits",
    "get_redis_client",
    "record_login_attempt",
]
