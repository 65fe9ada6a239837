"""OSINT Hub FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - /            — service discovery root
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()           → app.state.config
  2. create_http_client()    → app.state.http_client (shared by oracle + search)
  3. OwnershipOracle         → app.state.oracle
  4. build_limiters()        → app.state.limiters; sweep tasks started
  5. UserStore.from_env()    → app.state.user_store
  6. app.state.ready = True

Shutdown (reverse):
  ready = False → stop sweep tasks → close HTTP client

Routes:
  GET  /                    service discovery
  GET  /health              readiness + quota stats
  POST /api/auth/login      credential login     (gated on ready)
  POST /api/auth/nft-auth   NFT wallet login     (gated on ready)
  POST /api/search          quota-gated search   (gated on ready)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from osinthub.auth.limiter import limiter
from osinthub.auth.router import router as auth_router
from osinthub.auth.users import UserStore
from osinthub.config import Config, load_config
from osinthub.errors import (
    ConfigurationError,
    ForbiddenError,
    OsintHubError,
    QuotaExceeded,
    UpstreamError,
)
from osinthub.health import router as health_router
from osinthub.models.responses import (
    build_configuration_error_response,
    build_error_response,
    build_internal_error_response,
    build_quota_exceeded_response,
)
from osinthub.oracle.ownership import OwnershipOracle
from osinthub.ratelimit.registry import LimiterRegistry, build_limiters
from osinthub.search.engine import create_http_client, router as search_router
from osinthub.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "OSINT Hub is starting up.",
            },
        )


def _include_error_detail(request: Request) -> bool:
    """Exception detail is only exposed outside production."""
    config = getattr(request.app.state, "config", None)
    if config is None:
        return DEBUG
    return DEBUG or not config.session.is_production


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, str]:
    return {
        "service": "OSINT Hub",
        "health": "/health",
        "login": "/api/auth/login",
        "nft_login": "/api/auth/nft-auth",
        "search": "/api/search",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("OSINT Hub starting up...")

    # load_config() raises SystemExit on an invalid file, before ready=True.
    config: Config = load_config()
    app.state.config = config
    if not config.upstream.api_token:
        logger.warning("OSINT_API_TOKEN is not set, /api/search will answer 503")
    if not config.session.secret:
        logger.info(
            "No session secret configured, deriving one from deployment identifiers",
            environment=config.session.environment,
        )

    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client

    app.state.oracle = OwnershipOracle(http_client, config.oracle)

    limiters: LimiterRegistry = build_limiters(config.rate_limits)
    limiters.start()
    app.state.limiters = limiters
    logger.info(
        "Rate limiters ready",
        nft_holder_limit=limiters.nft_holder.max_requests,
        regular_limit=limiters.regular.max_requests,
        window_ms=config.rate_limits.window_ms,
        sweep_interval_s=config.rate_limits.sweep_interval_s,
    )

    app.state.user_store = UserStore.from_env()

    app.state.ready = True
    logger.info("OSINT Hub ready")

    yield

    logger.info("OSINT Hub shutting down...")
    app.state.ready = False

    await limiters.stop()

    try:
        await http_client.aclose()
        logger.info("HTTP client closed")
    except Exception as exc:
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("OSINT Hub shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the OSINT Hub FastAPI application.

    Call directly in tests to get an isolated app instance. Tests that skip
    the lifespan populate ``app.state`` themselves.
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="OSINT Hub",
        description="Authenticated, quota-gated gateway to an OSINT lookup API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    application.state.ready = False

    # slowapi looks the limiter up on app.state.
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_middleware(SlowAPIMiddleware)

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(
        auth_router, prefix="/api/auth", dependencies=[Depends(require_ready)]
    )
    application.include_router(
        search_router, prefix="/api", dependencies=[Depends(require_ready)]
    )

    # ── Exception handlers ────────────────────────────────────────────────────

    @application.exception_handler(OsintHubError)
    async def osinthub_error_handler(request: Request, exc: OsintHubError) -> JSONResponse:
        path = str(request.url.path)
        if isinstance(exc, QuotaExceeded):
            return build_quota_exceeded_response(exc.result, exc.limit)
        if isinstance(exc, ConfigurationError):
            return build_configuration_error_response(exc.message, exc.remediation)
        if isinstance(exc, ForbiddenError):
            return build_error_response(403, exc.message, details=exc.details)
        if isinstance(exc, UpstreamError):
            logger.error("Upstream failure", error=exc.message, path=path)
            return build_internal_error_response(
                exc,
                include_detail=_include_error_detail(request),
                details="Failed to process search request",
            )
        logger.info(
            "Request rejected",
            status_code=exc.status_code,
            error=exc.message,
            path=path,
        )
        return build_error_response(exc.status_code, exc.message)

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return build_internal_error_response(
            exc, include_detail=_include_error_detail(request)
        )

    return application


app = create_app()


if __name__ == "__main__":
    from osinthub.run import main

    main()
