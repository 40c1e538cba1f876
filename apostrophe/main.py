"""
Apostrophe Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() builds Settings-driven services, stores
       them on app.state, and returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn apostrophe.main:app) or `apostrophe-server`.
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                        FastAPI App                          │
    │                                                             │
    │  Middleware Chain:                                          │
    │  ┌──────────┐ ┌─────────┐ ┌──────┐ ┌──────┐                 │
    │  │  Req ID  │→│ Logging │→│ GZip │→│ CORS │                 │
    │  └──────────┘ └─────────┘ └──────┘ └──────┘                 │
    │                                                             │
    │  app.state:                                                 │
    │    settings · database · file_service · ai_service          │
    │                                                             │
    │  Routes:                                                    │
    │  ┌────────────┐ ┌──────────────────┐ ┌─────────────┐        │
    │  │ /api/ai/*  │ │ /api/notes, files│ │ GET /health │        │
    │  └────────────┘ └──────────────────┘ └─────────────┘        │
    │                                                             │
    │  Exception Handlers:                                        │
    │  Validation→400 │ NotFound→404 │ Provider→429/502/503 │ 500 │
    └─────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging → notes table → image directory
    Shutdown:  dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from apostrophe import __version__
from apostrophe.config import Settings
from apostrophe.database import Database
from apostrophe.exceptions import (
    ApostropheError,
    DatabaseError,
    NotFoundError,
    ProviderRequestError,
    ValidationError,
)
from apostrophe.middleware.logging import RequestLoggingMiddleware
from apostrophe.middleware.request_id import RequestIDMiddleware, request_id_var
from apostrophe.routes import ai, health, notes
from apostrophe.services.ai_service import AIService
from apostrophe.services.file_service import FileService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    httpx is held at WARNING: its INFO request line includes the full URL,
    and the Gemini URL carries the API key as a query parameter.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    database: Database = app.state.database

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Apostrophe Backend %s starting up...", __version__)

    await database.migrate()
    logger.info("Notes database ready")

    settings.images_root.mkdir(parents=True, exist_ok=True)
    logger.info("Image directory: %s", settings.images_root.resolve())

    status = app.state.ai_service.provider_status()
    logger.info(
        "AI providers: gemini=%s huggingface=%s ollama=%s",
        "configured" if status.gemini else "not configured",
        "configured" if status.huggingface else "not configured",
        settings.ollama_endpoint,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Apostrophe Backend shutting down...")
    await database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    """JSON body shared by every handler (see schemas.note.ErrorResponse)."""
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


_SERVER_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy (most specific wins):
        ValidationError         → 400 validation_error
        NotFoundError           → 404 not_found
        ProviderRequestError    → 429 / 502 / 503, error = ErrorKind value
        DatabaseError           → 500 server_error (generic message)
        FileStorageError        → 500 server_error
        ApostropheError (base)  → 500 server_error
        Exception (fallback)    → 500 internal_server_error

    Handlers never put stack traces, file paths or SQL in the body; those
    go to the log with the request ID.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, "not_found", exc.message)

    @app.exception_handler(ProviderRequestError)
    async def handle_provider_error(request: Request, exc: ProviderRequestError):
        # The kind tells the UI whether to suggest adding a key or retrying
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return error_response(exc.status_code, exc.kind.value, exc.message, exc.context)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | %s", request_id_var.get(""), exc.message, exc.context
        )
        return error_response(500, "server_error", _SERVER_ERROR_MESSAGE)

    @app.exception_handler(ApostropheError)
    async def handle_app_error(request: Request, exc: ApostropheError):
        # FileStorageError lands here too; its message is written for users
        logger.error(
            "[%s] %s: %s | %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True)
        return error_response(
            500, "internal_server_error", "An unexpected error occurred. Please try again."
        )


def create_app(
    settings: Optional[Settings] = None,
    ai_service: Optional[AIService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        ai_service: Override the AI service (tests inject mock transports)

    Services are built here rather than in the lifespan so that they exist
    even when a test client drives the app without running startup.
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Apostrophe API",
        description=(
            "Local backend for the Apostrophe note editor: notes storage and "
            "AI assistance with Gemini → Hugging Face → Ollama fallback."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Application State ─────────────────────────────────────────────────
    file_service = FileService(settings)
    app.state.settings = settings
    app.state.database = Database(settings)
    app.state.file_service = file_service
    app.state.ai_service = ai_service or AIService(settings, file_service=file_service)

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = first run)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    # Embedding batches and long notes compress well
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(ai.router)
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Console entry point: serve on the configured loopback address."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "apostrophe.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `apostrophe.main:app` to be importable
app = create_app()
