from __future__ import annotations

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from app.services.auth_flow import EmailVerificationRequired
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ServiceError(ValueError):
    """A domain operation refused with a specific status and machine-readable code.

    Services raise subclasses of this; the registered handler renders them in the
    standard error envelope, so routers only catch them when they must react.
    """

    code: str
    message: str
    status_code: int = 400
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


def _default_code(status_code: int) -> str:
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        409: "conflict",
        413: "payload_too_large",
        429: "rate_limited",
    }
    return mapping.get(status_code, "http_error")


def _default_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _normalize_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    if isinstance(details, str):
        return {"detail": details}
    return {"detail": str(details)}


def _build_response(
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    **extra: Any,
) -> JSONResponse:
    payload = {
        "code": code,
        "error": code,
        "message": message,
        "data": None,
        "details": _normalize_details(details),
    }
    payload.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def _parse_http_exception_detail(detail: Any, status_code: int) -> tuple[str, str, dict]:
    code = _default_code(status_code)
    message = _default_message(status_code)

    if isinstance(detail, dict):
        code = detail.get("code") or code
        message = detail.get("message") or detail.get("detail") or message
        if "details" in detail:
            details = _normalize_details(detail.get("details"))
        else:
            remainder = {k: v for k, v in detail.items() if k not in {"code", "message", "detail"}}
            details = remainder or {"detail": message}
        return code, message, details

    if isinstance(detail, list):
        return code, message, {"errors": detail}

    if isinstance(detail, str):
        return code, detail, {"detail": detail}

    return code, message, {"detail": str(detail)}


def _field_errors(errors: list[dict]) -> list[dict[str, str]]:
    field_errors: list[dict[str, str]] = []
    for error in errors:
        loc = error.get("loc") or []
        # Drop the request section (body/query/path/form) and union tags from the location
        parts = [
            str(part)
            for part in loc
            if part not in {"body", "query", "path", "form", "header", "cookie"}
            and not str(part).isupper()
        ]
        message = str(error.get("msg") or "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        field_errors.append({"field": ".".join(parts) or "__root__", "message": message})
    return field_errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _parse_http_exception_detail(exc.detail, exc.status_code)
    response = _build_response(exc.status_code, code, message, details)
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    field_errors = _field_errors(list(exc.errors()))
    message = "Validation failed"
    if field_errors:
        first = field_errors[0]
        message = (
            first["message"]
            if first["field"] == "__root__"
            else f"{first['field']}: {first['message']}"
        )
    return _build_response(
        status_code=400,
        code="validation_error",
        message=message,
        details={"errors": field_errors},
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _build_response(exc.status_code, exc.code, exc.message, exc.details)


async def email_verification_exception_handler(
    request: Request, exc: "EmailVerificationRequired"
) -> JSONResponse:
    """Refused login for an unverified account; a fresh code has been issued."""
    return _build_response(
        status_code=403,
        code="verification_required",
        message=exc.message,
        details={"email": exc.email},
        requiresVerification=True,
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    details = getattr(exc, "detail", None)
    response = _build_response(
        status_code=429,
        code="rate_limited",
        message=_default_message(429),
        details=details,
    )
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _build_response(
        status_code=500,
        code="internal_server_error",
        message="Internal server error",
        details={},
    )


def register_exception_handlers(app) -> None:
    from app.services.auth_flow import EmailVerificationRequired

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(EmailVerificationRequired, email_verification_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
