"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: logging, database lifecycle, seed admin,
    change-feed manager, middleware and router wiring, and the mapping of
    storage failures onto HTTP responses.

Dependencies:
    - app.database
    - app.services.websocket_manager
"""

import logging
from contextlib import asynccontextmanager

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from app.config import settings
import app.database as _db
from app.database import close_db, connect_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.services.websocket_manager import websocket_manager

logger = logging.getLogger("tipfeed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    await connect_db()

    from app.seed import seed_initial_admin
    await seed_initial_admin()

    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.start()
        logger.info("Tip change feed enabled")
    else:
        logger.info("Tip change feed disabled via config")

    yield

    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.stop()
    await close_db()


app = FastAPI(
    title="Tipfeed",
    description="Community sports tips with stake tracking and leaderboards",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from app.routers.auth import router as auth_router
from app.routers.tips import router as tips_router
from app.routers.tracking import router as tracking_router
from app.routers.social import router as social_router
from app.routers.leaderboard import router as leaderboard_router
from app.routers.dashboard import router as dashboard_router
from app.routers.admin import router as admin_router
from app.routers.ws import router as ws_router

app.include_router(auth_router)
app.include_router(tips_router)
app.include_router(tracking_router)
app.include_router(social_router)
app.include_router(leaderboard_router)
app.include_router(dashboard_router)
app.include_router(admin_router)
app.include_router(ws_router)


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        # Strip the "body" / "query" prefix for cleaner messages
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        message = str(err.get("msg", "Invalid value.")).removeprefix("Value error, ")
        errors.append({"field": field, "message": message})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check: database ping plus change-feed stats."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "change_feed": websocket_manager.stats(),
    }
