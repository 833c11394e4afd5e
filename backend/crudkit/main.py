"""
crudkit Backend — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn crudkit.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────┐ ┌──────┐ ┌──────────┐ │
    │  │  Req ID  │→│  Logging    │→│ GZip │→│  CORS    │ │
    │  └──────────┘ └─────────────┘ └──────┘ └──────────┘ │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌───────────────┐ ┌────────────┐  │
    │  │ /profile ... │ │ /notifications│ │ GET /health│  │
    │  └──────────────┘ └───────────────┘ └────────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ AppError→own status │ 404→501 │ other→500     │  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup (dependencies are built once and kept on app.state):
    1. Logging, configuration validation, storage directory
    2. Database (engine + sessions); SQLite runs create the tables
    3. DataStore with the User and Notification stores
    4. AuthManager, UserManager, FileService, ImageService

    Shutdown:
    1. Dispose the database engine if this app created it
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crudkit import __version__
from crudkit.auth import AuthManager
from crudkit.config import Settings, settings as default_settings
from crudkit.core.route import RouteDefinition, register_routes
from crudkit.database import Database
from crudkit.exceptions import AppError, Unauthorized, Unimplemented, translate_error
from crudkit.middleware.cors import RouteCORSMiddleware
from crudkit.middleware.logging import RequestLoggingMiddleware
from crudkit.middleware.request_id import RequestIDMiddleware, request_id_var
from crudkit.routes import build_routes, health
from crudkit.services.file_service import FileService
from crudkit.services.image_service import ImageService
from crudkit.services.user_manager import UserManager
from crudkit.store import DataStore, NotificationStore, UserStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    When:   Called once during app startup (before any other initialization).
    """
    config = config or default_settings
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Third-party libraries log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

def build_data_store(db: Database) -> DataStore:
    return DataStore({
        "User": UserStore(db),
        "Notification": NotificationStore(db),
    })


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the process-wide dependencies on startup, release them on shutdown.

    Anything already present on app.state (tests inject a Database or a
    DataStore) is used as-is and not disposed here.
    """
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config)
    logger.info("=" * 60)
    logger.info("crudkit backend starting up...")

    try:
        config.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        raise

    storage = Path(config.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    owns_db = getattr(app.state, "db", None) is None
    if owns_db:
        app.state.db = Database(config)
    if config.is_sqlite:
        await app.state.db.create_all()

    if getattr(app.state, "data_store", None) is None:
        app.state.data_store = build_data_store(app.state.db)
    app.state.auth_manager = AuthManager.from_settings(config)
    app.state.user_manager = UserManager(app.state.data_store, config)
    app.state.file_service = FileService(config.storage_root, config.max_file_size)
    app.state.image_service = ImageService(app.state.file_service)

    logger.info("Stores: %s", ", ".join(app.state.data_store))
    logger.info("Auth schemes: %s", ", ".join(app.state.auth_manager.names))
    logger.info("API docs: http://%s:%d/docs", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("crudkit backend shutting down...")
    if owns_db:
        await app.state.db.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the standard error envelope:
        {"code", "message", "uiMessage", "requestId", "errors"?}

    Handler hierarchy:
        AppError               → its own status_code / code
        RequestValidationError → 400, code 400, per-field errors
        HTTP 404 / 405         → 501 Not implemented (no such API)
        HTTP 401               → 401 Unauthorized
        other HTTP errors      → their status, code = status
        Exception (fallback)   → 500, code 1000

    Details (context, stack traces) are logged server-side, never returned.
    """

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s (%s): %s", rid, type(exc).__name__, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_payload(requestId=rid),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())),
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        logger.info("[%s] Request validation failed: %s", rid, errors)
        return JSONResponse(
            status_code=400,
            content=translate_error("400", requestId=rid, errors=errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        rid = request_id_var.get("")
        if exc.status_code in (404, 405):
            error = Unimplemented()
            return JSONResponse(status_code=error.status_code, content=error.to_payload(requestId=rid))
        if exc.status_code == 401:
            error = Unauthorized()
            return JSONResponse(status_code=401, content=error.to_payload(requestId=rid))
        code = str(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=translate_error(code, message=str(exc.detail), ui_message=str(exc.detail), requestId=rid),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=translate_error("1000", requestId=rid),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    db: Optional[Database] = None,
    data_store: Optional[DataStore] = None,
    routes: Optional[Iterable[RouteDefinition]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config:     Settings (module singleton by default)
        db:         Pre-built Database (tests); otherwise built in the lifespan
        data_store: Pre-built DataStore (tests); otherwise built in the lifespan
        routes:     Route definitions; build_routes() by default
    """
    config = config or default_settings
    app = FastAPI(
        title=config.api_title,
        description="Generic REST resources with profile and notification features.",
        version=config.api_version or __version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.db = db
    app.state.data_store = data_store

    route_list = list(build_routes() if routes is None else routes)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute: RequestID → Logging → GZip → CORS
    # Per-route CORS policies come from route_list
    app.add_middleware(
        RouteCORSMiddleware,
        routes=route_list,
        allow_origins=config.cors_origins_list,
        allow_credentials="*" not in config.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    register_routes(app, route_list)
    app.include_router(health.router)

    return app


# uvicorn expects `crudkit.main:app` to be importable
app = create_app()
