"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (logging, database engine).
Middleware, exception handlers, and routers all registered here.

Exception handlers keep every error body in the {"message": ...} shape:
- AuthFailure        → 401, credential cookie cleared
- ConcurrentUpdate   → 409
- TransactionFailure → 500
- CodecError         → 500
- HTTPException      → its own status
- RequestValidationError → 422, field errors joined into one message
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from noticeboard import __version__
from noticeboard.api import api_router
from noticeboard.auth.dependencies import auth_failure_handler
from noticeboard.auth.errors import AuthFailure
from noticeboard.auth.password import CodecError
from noticeboard.config import settings
from noticeboard.db.engine import ConcurrentUpdate, TransactionFailure
from noticeboard.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "noticeboard.starting",
        version=__version__,
        environment=settings.environment,
        auth_strategy=settings.auth_strategy,
        port=settings.port,
    )

    yield

    logger.info("noticeboard.shutdown")

    from noticeboard.db.engine import engine
    await engine.dispose()


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(status_code=422, content={"message": "; ".join(parts)})


async def concurrent_update_handler(request: Request, exc: ConcurrentUpdate):
    return JSONResponse(
        status_code=409,
        content={"message": "The record was changed by another request, please retry"},
    )


async def transaction_failure_handler(request: Request, exc: TransactionFailure):
    return JSONResponse(
        status_code=500,
        content={"message": "The operation could not be completed"},
    )


async def codec_error_handler(request: Request, exc: CodecError):
    logger.error("auth.codec_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"message": "The operation could not be completed"},
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Noticeboard",
        description="Community board — accounts, audited profiles, posts and comments",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler

    from noticeboard.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ────────────────────────────────────
    # ConcurrentUpdate subclasses TransactionFailure; Starlette picks the
    # most specific handler along the MRO.
    app.add_exception_handler(AuthFailure, auth_failure_handler)
    app.add_exception_handler(ConcurrentUpdate, concurrent_update_handler)
    app.add_exception_handler(TransactionFailure, transaction_failure_handler)
    app.add_exception_handler(CodecError, codec_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: noticeboard.main:app)
app = create_app()
