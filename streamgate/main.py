"""
Application factory.

Usage:
    uvicorn streamgate.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from streamgate.api.routes import (
    entitlements,
    health,
    payments,
    sessions,
    subscriptions,
    webhooks_payments,
)
from streamgate.platform.errors import ErrorHandlerMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    gateway = getattr(app.state, "gateway_client", None)
    if gateway is not None:
        await gateway.close()
        logger.info("Gateway client closed")


def create_app() -> FastAPI:
    app = FastAPI(title="streamgate", version="0.1.0", lifespan=lifespan)
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(health.router)
    app.include_router(payments.router)
    app.include_router(subscriptions.router)
    app.include_router(entitlements.router)
    app.include_router(sessions.router)
    app.include_router(webhooks_payments.router)
    return app


app = create_app()
