"""FastAPI application factory for Edgy.

Creates and configures the FastAPI app with CORS, error envelopes
and all route modules registered under ``/api/v1``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..core.config import Settings, get_settings
from ..core.gateway import LLMGateway
from ..core.knowledge.models import KnowledgeBase
from ..core.pipeline.jobs import JobStore
from ..core.pipeline.orchestrator import PipelineOrchestrator, ScreenGenerator

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_ERROR_CODES = {
    400: "INVALID_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    500: "INTERNAL_ERROR",
}


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def create_app(
    settings: Optional[Settings] = None,
    job_store: Optional[JobStore] = None,
    gateway: Optional[LLMGateway] = None,
    knowledge: Optional[KnowledgeBase] = None,
    screen_generator: Optional[ScreenGenerator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Runtime settings (default: ``get_settings()``)
        job_store: JobStore instance (default: a fresh in-memory store)
        gateway: LLMGateway instance (default: one built from settings)
        knowledge: KnowledgeBase (default: loaded lazily from settings)
        screen_generator: Optional missing-screen generator

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    job_store = job_store or JobStore()
    gateway = gateway or LLMGateway(settings=settings)

    app = FastAPI(
        title="Edgy API",
        description="UX edge-case analysis for design flows",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store shared dependencies on app state
    app.state.settings = settings
    app.state.job_store = job_store
    app.state.gateway = gateway
    app.state.orchestrator = PipelineOrchestrator(
        job_store,
        gateway,
        knowledge=knowledge,
        settings=settings,
        screen_generator=screen_generator,
    )

    # Error envelopes
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        code = _ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        if exc.status_code == 404 and message == "Not Found":
            message = f"Route {request.method} {request.url.path} not found"
        return JSONResponse(status_code=exc.status_code, content=error_body(code, message))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request body"
        return JSONResponse(status_code=400, content=error_body("INVALID_REQUEST", message))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", "Internal server error"))

    # Register routers
    from .routes.analyze import router as analyze_router
    from .routes.jobs import router as jobs_router
    from .routes.metrics import router as metrics_router

    app.include_router(analyze_router, prefix=API_PREFIX)
    app.include_router(jobs_router, prefix=API_PREFIX)
    app.include_router(metrics_router, prefix=API_PREFIX)

    @app.get(f"{API_PREFIX}/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    logger.info("FastAPI app created with all routes registered")
    return app
