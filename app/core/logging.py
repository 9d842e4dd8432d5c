import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from app.core.context import get_client_ip, get_request_id, get_user_id
from app.core.settings import settings

SERVICE_NAME = "litefi-backend"


class RequestContextFilter(logging.Filter):
    """Inject request, user and client ids into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.user_id = get_user_id()
        record.client_ip = get_client_ip()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"event": {...}}`` is emitted as-is."""

    def __init__(self, stream_label: str = "transactional") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "stream": self.stream_label,
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
            "client_ip": getattr(record, "client_ip", "-"),
        }
        event = getattr(record, "event", None)
        if isinstance(event, dict):
            payload["event"] = event
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handler(formatter: str, level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    quiet = {"handlers": ["default"], "level": log_level, "propagate": False}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_context": {"()": RequestContextFilter},
            },
            "formatters": {
                "json": {"()": JsonFormatter, "stream_label": "transactional"},
                "audit_json": {"()": JsonFormatter, "stream_label": "audit"},
                "access_json": {"()": JsonFormatter, "stream_label": "access"},
            },
            "handlers": {
                "default": _handler("json", log_level),
                "audit": _handler("audit_json", log_level),
                "access": _handler("access_json", log_level),
            },
            "loggers": {
                "": {"handlers": ["default"], "level": log_level, "propagate": False},
                "app.audit": {"handlers": ["audit"], "level": log_level, "propagate": False},
                "app.access": {"handlers": ["access"], "level": log_level, "propagate": False},
                "uvicorn": quiet,
                "uvicorn.error": quiet,
                # replaced by app.access, which carries the request id
                "uvicorn.access": {"handlers": [], "level": "WARNING", "propagate": False},
                "sqlalchemy.engine": {**quiet, "level": "WARNING"},
            },
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured for environment=%s storage_provider=%s",
        settings.environment,
        settings.storage_provider,
    )


def mask_email(email: Optional[str]) -> str:
    """``ada@example.com`` -> ``a***@example.com`` for log lines."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def get_audit_logger() -> logging.Logger:
    return logging.getLogger("app.audit")
