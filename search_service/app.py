"""
FastAPI job search service.

Serves resume-driven job search backed by a two-tier cache (Redis in front
of MongoDB) and a set of live source adapters. Services are built once in
the lifespan handler and shared through a ServiceContainer on app.state.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from src.common.error_handling import InvalidSearchInputError
from src.common.logger import setup_logging

from . import __version__
from .config import get_settings, validate_config_on_startup
from .dependencies import ServiceContainer, build_container
from .models import HealthResponse
from .routes import cron_router, job_search_router, resume_router

logger = logging.getLogger(__name__)


def _error_body(error: str, details=None) -> dict:
    return {"error": error, "details": details}


# =============================================================================
# Exception handlers
# =============================================================================

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException as {error, details}; dict details pass through."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        body = _error_body(exc.detail["error"], exc.detail.get("details"))
    else:
        body = _error_body(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", [])), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Invalid request", details))


async def invalid_input_handler(request: Request, exc: InvalidSearchInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(str(exc), exc.details))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error", str(exc)))


# =============================================================================
# Application factory
# =============================================================================

def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built services. When omitted, the lifespan handler
            validates settings and connects backends at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        setup_logging(settings.log_level, settings.log_format)

        owned = False
        if getattr(app.state, "container", None) is None:
            settings = validate_config_on_startup()
            app.state.container = await build_container(settings)
            owned = True
            logger.info("Search service started")
        try:
            yield
        finally:
            if owned:
                await app.state.container.close()
                app.state.container = None
                logger.info("Search service stopped")

    app = FastAPI(title="Job Search Service", version=__version__, lifespan=lifespan)
    app.state.container = container

    settings = get_settings()
    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InvalidSearchInputError, invalid_input_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(job_search_router)
    app.include_router(resume_router)
    app.include_router(cron_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Liveness probe with the enabled sources and fast cache backend."""
        current = getattr(request.app.state, "container", None)
        if current is None:
            return HealthResponse(status="starting", timestamp=datetime.utcnow())

        return HealthResponse(
            status="healthy",
            timestamp=datetime.utcnow(),
            sources=[source.name for source in current.aggregator.sources],
            fast_cache=type(current.aggregator.fast_cache).__name__,
        )

    return app


app = create_app()
