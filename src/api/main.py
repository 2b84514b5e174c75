from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import create_repository
from .errors import AppError, StorageError
from .routers import posts as posts_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "posts", "description": "CRUD operations for blog posts with pagination."},
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging. The level is applied even when the root logger
    already has handlers.
    """
    numeric = getattr(logging, level, logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)


def _error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "status": status_code},
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    """
    Reduce pydantic/fastapi error details to the first human-readable reason.
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"
    field = ".".join(
        str(p) for p in first.get("loc", ()) if not isinstance(p, int) and p not in ("body", "query", "path")
    )

    if first.get("type") == "value_error":
        reason = (first.get("ctx") or {}).get("error")
        if reason is not None:
            return str(reason)
    if first.get("type") == "missing" and field:
        return f"{field.capitalize()} is required"
    msg = str(first.get("msg", "Invalid request"))
    return f"{field}: {msg}" if field else msg


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """
        Map domain failures to the {"error", "status"} response body. Storage
        details are logged and replaced by a generic message.
        """
        if isinstance(exc, StorageError):
            logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The pooled repository is created on startup and stored on `app.state`,
    then closed on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        app.state.repository = create_repository(settings)
        try:
            yield
        finally:
            app.state.repository.close()
            logger.info("Database connections closed")

    app = FastAPI(
        title="Blog API",
        description="Backend API service for managing blog posts.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms
        )
        return response

    _register_exception_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Service Info", tags=["health"])
    def root():
        return {"message": "Blog API Server"}

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"status": "ok"}

    app.include_router(posts_router.router, prefix="/posts")
    app.include_router(posts_router.router, prefix="/api/posts", include_in_schema=False)
    return app


# Reads the process environment only; `run()` loads .env before building its app
app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the application with uvicorn on HOST:PORT (reads a .env file first)."""
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Listening on %s:%d", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
