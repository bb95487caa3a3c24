"""
FastAPI app exposing the movies provider over HTTP.
Run as `uvicorn moviestore.api:app`.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .logs import ensure_log_schema, LogContext
from .provider import MoviesProvider


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_log_schema()
    provider = MoviesProvider()
    if not provider.on_create():
        LogContext("STARTUP").write("ERROR", "provider_on_create_failed")
    app.state.provider = provider
    try:
        yield
    finally:
        provider.shutdown()


app = FastAPI(title="moviestore-api", version="0.1.0", lifespan=lifespan)


# Include routers
from .routes import base as base_routes
from .routes import movies as movies_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(movies_routes.router)
app.include_router(logs_routes.router)
