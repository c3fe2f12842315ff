from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orderflow.app.api.endpoints.health import router as health_router
from orderflow.app.api.router import router as api_router
from orderflow.app.config import Config
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.db.session import Database
from orderflow.app.errors import register_error_handlers
from orderflow.app.logging_config import configure_logging
from orderflow.services.identity import ClerkIdentityProvider, SendGridMailer
from orderflow.services.notifications import FcmPushChannel, NotificationDispatcher

logger = logging.getLogger(__name__)


def create_app(
    config: Config | None = None,
    *,
    database: Database | None = None,
    notifier: NotificationDispatcher | None = None,
    identity=None,
    mailer=None,
    retry_policy: RetryPolicy | None = None,
) -> FastAPI:
    """
    Build the application. Every collaborator can be injected (tests pass an
    in-memory database and fake channels); the rest is built from config.
    """
    config = config or Config()
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("orderflow starting", extra={"environment": config.ENVIRONMENT})
        yield
        app.state.database.dispose()

    app = FastAPI(title="Orderflow", version="0.1.0", lifespan=lifespan)

    app.state.config = config
    app.state.database = database or Database.from_config(config)
    app.state.retry_policy = retry_policy or RetryPolicy.from_config(config)
    app.state.notifier = notifier or NotificationDispatcher(FcmPushChannel.from_config(config))
    app.state.identity = identity or ClerkIdentityProvider.from_config(config)
    app.state.mailer = mailer or SendGridMailer.from_config(config)

    register_error_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api")
    return app
