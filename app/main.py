"""Talkative Chat API - Main Application Module.

This module initializes the FastAPI application with configuration,
middleware, routing, and lifecycle management for the multi-provider chat
server.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_config_summary, settings
from app.core.logging import request_id_var, setup_logging
from app.database import AsyncSessionLocal, engine
from models import Base

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _error_body(request: Request, message: str, error_code: str, details=None) -> dict:
    return {
        "status": "error",
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": _timestamp(),
        "request_id": getattr(request.state, "request_id", None),
    }


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Manage application lifecycle events."""
    logger.info(f"Starting {settings.app_name} {settings.version} ({settings.environment.value})")
    logger.info(f"Configuration: {get_config_summary()}")

    # Development mode: Auto-create tables if they don't exist
    # Production: Use Alembic migrations (alembic upgrade head)
    if settings.is_development:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Development mode: database tables created/verified")
    else:
        logger.info("Use 'alembic upgrade head' to manage the database schema")

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Multi-provider AI chat server with streamed generation",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Add middleware
    setup_middleware(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Thread-Id", "X-Vercel-AI-Data-Stream"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Handle custom exceptions that have structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, message, error_code, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Convert errors to JSON-serializable format
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": error.get("loc", []),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            errors.append(error_dict)

        return JSONResponse(
            status_code=400,
            content=_error_body(request, "Validation error", "VALIDATION_ERROR", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "An unexpected error occurred", "INTERNAL_ERROR"),
        )


def setup_routers(app: FastAPI):
    """Configure application routers."""
    # Import routers
    from app.domains.ai.controller import router as ai_router
    from app.domains.attachment.controller import router as attachment_router
    from app.domains.chat.controller import router as chat_router
    from app.domains.preferences.controller import router as preferences_router
    from app.domains.share.controller import router as share_router
    from app.domains.thread.controller import router as thread_router

    @app.get("/health")
    async def health_check():
        """Health check endpoint reporting database connectivity."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as db:
                await db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning(f"Health check database probe failed: {str(e)}")
            db_status = "unhealthy"

        return JSONResponse(
            status_code=200 if db_status == "healthy" else 503,
            content={
                "status": "healthy" if db_status == "healthy" else "degraded",
                "version": settings.version,
                "environment": settings.environment.value,
                "timestamp": _timestamp(),
                "services": {"database": db_status},
            },
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": "Multi-provider AI chat server",
            "docs_url": "/docs" if settings.is_development else None,
        }

    # Include domain routers
    app.include_router(chat_router)
    app.include_router(thread_router)
    app.include_router(share_router)
    app.include_router(attachment_router)
    app.include_router(preferences_router)
    app.include_router(ai_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
