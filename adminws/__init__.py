# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from adminws.logging import logger
from adminws.managers.websocket_connection_manager import ConnectionRegistry
from adminws.middlewares.correlation_id import CorrelationIDMiddleware
from adminws.routing import collect_subrouters


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifecycle.

    Startup creates the connection registry the WebSocket endpoint and the
    producers share. Shutdown closes every open connection before the
    server stops accepting work.
    """
    logger.info("Application startup initiated")
    app.state.registry = ConnectionRegistry()

    yield

    logger.info("Application shutdown initiated")
    await app.state.registry.shutdown_all()
    logger.info("Application shutdown complete")


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    Routers are collected from ``adminws/api/http`` and
    ``adminws/api/ws/consumers``. ``CorrelationIDMiddleware`` tags every
    HTTP request (and its log lines) with an ``X-Correlation-ID``.
    """
    app = FastAPI(
        title="Admin panel WebSocket fan-out",
        description="Per-user WebSocket push channel for the admin panel",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(collect_subrouters())

    app.add_middleware(CorrelationIDMiddleware)

    return app
