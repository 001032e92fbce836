"""
FastAPI application for the hydropad service.

create_app() builds the service around the module-level routes; the
``app`` instance at the bottom is what an ASGI server imports, e.g.
``uvicorn hydropad.api.main:app``.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hydropad import __version__
from hydropad.api import routes
from hydropad.api.exceptions import register_exception_handlers
from hydropad.api.models import ErrorResponse
from hydropad.config.defaults import ENV_CORS_ORIGINS

logger = logging.getLogger(__name__)

# Vite dev server, where the map front end runs during development
DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _get_cors_origins() -> list[str]:
    """
    Browser origins allowed to call the API.

    Reads a comma-separated list from HYDROPAD_CORS_ORIGINS, falling back to
    the local front-end dev server.
    """
    env_origins = os.getenv(ENV_CORS_ORIGINS)
    if not env_origins:
        return list(DEV_ORIGINS)
    return [origin.strip() for origin in env_origins.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    config = routes.config
    logger.info(
        f"hydropad API {__version__} starting: proxy={config.fetch.proxy_base}, "
        f"try_direct={config.fetch.try_direct}, cached rainfall tables={len(routes.rainfall_cache)}"
    )
    yield
    logger.info("hydropad API stopped")


def create_app(cors_origins: list[str] | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cors_origins: Allowed browser origins; read from the environment when omitted

    Returns:
        FastAPI instance with CORS, error handlers and all routes registered
    """
    application = FastAPI(
        title="Hydropad API",
        description="Watershed delineation, rainfall frequency and runoff estimates from public hydrologic services",
        version=__version__,
        lifespan=lifespan,
        responses={502: {"model": ErrorResponse, "description": "Every upstream source failed"}},
    )

    # The front end only reads (GET) and submits points or geometries (POST)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins is not None else _get_cors_origins(),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    register_exception_handlers(application)
    application.include_router(routes.router)

    return application


app = create_app()
