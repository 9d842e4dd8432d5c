from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1 import api_router
from app.core.errors import register_exception_handlers
from app.core.health import APP_VERSION
from app.core.limiter import limiter
from app.core.logging import configure_logging
from app.core.response_envelope import register_response_envelope
from app.core.settings import Settings, settings
from app.events import register_event_handlers
from app.middlewares.request_context import RequestContextMiddleware
from app.middlewares.security_headers import SecurityHeadersMiddleware
from app.middlewares.trust_proxies import TrustedProxiesMiddleware

DESCRIPTION = (
    "LiteFi lending API: borrower accounts, loan applications, supporting documents "
    "and back-office review."
)


def create_app(config: Settings = settings) -> FastAPI:
    configure_logging(config.log_level)
    docs_enabled = not config.is_production
    app = FastAPI(
        title="LiteFi Backend",
        description=DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = config
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter

    # last added runs first: CORS, headers, proxies, request context, rate limit
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=config.proxies_count)
    app.add_middleware(
        SecurityHeadersMiddleware, enable_hsts=config.enable_hsts or config.is_production
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
