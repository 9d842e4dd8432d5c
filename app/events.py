import logging

from fastapi import FastAPI

from app.db.init_db import init_db
from app.db.session import engine
from app.services.email import EmailService
from app.services.storage.service import get_storage_adapter
from app.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        config = app.state.settings
        logger.info("Application startup environment=%s", config.environment)
        app.state.email_service = EmailService(config)
        try:
            app.state.document_storage = get_storage_adapter(config)
        except ValueError:
            # uploads fail until storage is configured; the rest of the API still serves
            logger.exception("Document storage is not configured")
        await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        mailer = getattr(app.state, "email_service", None)
        if mailer is not None:
            await mailer.aclose()
        await close_redis_client()
        await engine.dispose()
