"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn videolens.main:app --reload

For production:
    gunicorn videolens.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import analysis, health
from .config.settings import get_settings
from .core.analysis.errors import (
    UnexpectedInternalError,
    VideoAnalysisError,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. A missing provider key is logged but
    does not stop startup: analysis requests answer 500 until it is set.
    """
    # Startup
    settings = get_settings()

    logger.info(
        "VideoLens API starting",
        extra={
            "version": __version__,
            "model": settings.openrouter_model,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    # Shutdown
    logger.info("VideoLens API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        AI-powered video analysis.

        ## Workflow

        `POST /api/analyze-video` with a multipart form:

        - `video`: video file (preferred when both are given)
        - `videoUrl`: URL of a video the model can fetch
        - `focusPrompt`: optional focus, e.g. "analyze footwork"
        - `stream`: `true` (default) forwards the model's event stream,
          `false` returns `{summary, details}` as JSON
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        analysis.router,
        prefix="/api",
        tags=["Analysis"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - point at the docs."""
        return {
            "message": "VideoLens API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(VideoAnalysisError)
    async def analysis_error_handler(request: Request, exc: VideoAnalysisError):
        """Render taxonomy errors as {"error", "details"} with their status."""
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Analysis request failed",
            extra={
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "status": exc.status_code,
                "error": exc.message,
            }
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed form fields get the same error shape as other 400s."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request.", "details": problems},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side; the client only sees the
        immediate cause, never a stack trace.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        error = UnexpectedInternalError(details=str(exc) or type(exc).__name__)
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "videolens.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
