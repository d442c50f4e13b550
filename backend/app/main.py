"""
JBin Backend — FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance;
       the lifespan opens the blob store and the bot verifier and closes them
       on shutdown.
Who:   uvicorn serves the module-level `app` (see `python -m app`); tests call
       create_app() with their own Settings.

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  Middleware (outermost first):                            │
    │  CORS → RequestID → Logging → Security → RateLimit → GZip │
    │                                                           │
    │  Routes:                                                  │
    │  POST /api/blobs   GET /api/blobs/{id}                    │
    │  GET  /api/health  GET /api/config                        │
    │                                                           │
    │  app.state:                                               │
    │  settings, api_limiter, create_limiter,                   │
    │  blob_store, verifier, blob_service (lifespan)            │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Check configuration consistency (problems are logged)
    3. Create the data directory and open the blob store
    4. Build the reCAPTCHA verifier if a secret key is configured

    Shutdown:
    1. Close the verifier's HTTP client
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.config import Settings, settings as default_settings
from app.exceptions import (
    DatabaseError,
    JBinError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitExceededError,
    ValidationError,
    VerificationFailedError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import RateLimitMiddleware, SlidingWindowRateLimiter
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.middleware.security_headers import SecurityHeadersMiddleware
from app.routes import blobs, health, public_config
from app.services.blob_service import BlobService
from app.services.blob_store import BlobStore
from app.services.recaptcha_service import RecaptchaVerifier
from app.services.verification_base import BotVerifier

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging.

    Format: 2024-01-15T12:00:00 [INFO] app.services.blob_service: Blob ... created
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries are noisy at INFO
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
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("JBin Backend %s starting up...", __version__)

    try:
        config.validate_consistency()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    if not config.database_url:
        data_dir = Path(config.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Data directory: %s", data_dir.resolve())

    store = BlobStore(config.resolved_database_url)
    await store.open()

    verifier: Optional[BotVerifier] = app.state.verifier_override
    if verifier is None and config.recaptcha_enabled:
        verifier = RecaptchaVerifier(
            secret_key=config.recaptcha_secret_key,
            min_score=config.recaptcha_min_score,
            verify_url=config.recaptcha_verify_url,
            timeout=config.recaptcha_timeout,
        )
    if verifier is None:
        logger.warning("reCAPTCHA verification disabled (RECAPTCHA_SECRET_KEY not set)")

    app.state.blob_store = store
    app.state.verifier = verifier
    app.state.blob_service = BlobService(
        store=store,
        verifier=verifier,
        id_length=config.blob_id_length,
        max_attempts=config.id_generation_attempts,
    )

    logger.info("Server ready on port %d", config.port)
    logger.info("=" * 60)

    try:
        yield
    finally:
        # ── Shutdown ──────────────────────────────────────────────────────
        logger.info("JBin Backend shutting down...")
        if verifier is not None:
            await verifier.aclose()
        await store.close()
        logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(status_code: int, message: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "code": code,
            "request_id": request_id_var.get("") or None,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP status codes and the standard error body.

    Handler hierarchy:
        ValidationError          → 400 Bad Request
        RequestValidationError   → 400 Bad Request
        VerificationFailedError  → 403 Forbidden
        NotFoundError            → 404 Not Found
        PayloadTooLargeError     → 413 Payload Too Large
        RateLimitExceededError   → 429 Too Many Requests
        DatabaseError            → 500 Internal Server Error
        JBinError (base)         → 500 Internal Server Error
        HTTPException            → its own status (unknown routes, methods)
        Exception (fallback)     → 500 Internal Server Error

    Internal details (SQL, paths, stack traces) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning("[%s] Request validation failed: %d errors",
                       request_id_var.get(""), len(exc.errors()))
        return error_response(400, "Invalid request", ValidationError.code)

    @app.exception_handler(VerificationFailedError)
    async def handle_verification_failed(request: Request, exc: VerificationFailedError):
        logger.warning("[%s] Verification failed: %s", request_id_var.get(""), exc.context)
        return error_response(403, exc.message, exc.code)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, exc.message, exc.code)

    @app.exception_handler(PayloadTooLargeError)
    async def handle_payload_too_large(request: Request, exc: PayloadTooLargeError):
        logger.warning("[%s] Body over %d bytes rejected", request_id_var.get(""), exc.limit)
        return error_response(413, "Request body too large", exc.code)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return error_response(
            429,
            exc.message,
            exc.code,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return error_response(500, exc.message, exc.code)

    @app.exception_handler(JBinError)
    async def handle_jbin_error(request: Request, exc: JBinError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s",
                     rid, exc.message, exc.context)
        return error_response(500, "Internal server error", exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "Not found", "not_found", headers=exc.headers)
        return error_response(exc.status_code, str(exc.detail), "http_error", headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return error_response(500, "Internal server error", "internal_error")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    verifier: Optional[BotVerifier] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to the environment-derived instance
        verifier: Bot verifier to use instead of building a RecaptchaVerifier
                  (enables verification even without a secret key)
    """
    config = settings or default_settings

    app = FastAPI(
        title="JBin API",
        description="Pastebin for JSON: store any JSON document, share it by ID.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.verifier_override = verifier
    app.state.api_limiter = SlidingWindowRateLimiter(
        max_requests=config.rate_limit_max,
        window_seconds=config.rate_limit_window_ms / 1000,
    )
    app.state.create_limiter = SlidingWindowRateLimiter(
        max_requests=config.create_limit_max,
        window_seconds=config.create_limit_window_ms / 1000,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first, so execution order is:
    # CORS → RequestID → Logging → SecurityHeaders → RateLimit → GZip

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.api_limiter,
        trust_proxy=config.trust_proxy,
    )

    app.add_middleware(SecurityHeadersMiddleware, settings=config)

    app.add_middleware(RequestLoggingMiddleware, trust_proxy=config.trust_proxy)

    app.add_middleware(RequestIDMiddleware)

    # Empty CORS_ORIGINS allows every origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
        ],
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(blobs.router)
    app.include_router(health.router)
    app.include_router(public_config.router)

    return app


# uvicorn imports `app.main:app`
app = create_app()
