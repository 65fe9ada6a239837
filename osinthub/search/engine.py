"""Search gateway — quota-gated forwarding to the upstream OSINT provider.

POST /api/search pipeline (each step short-circuits on failure):

  0. bind_request_id               fresh ULID request_id for every log entry
  1. require_upstream_configured   no upstream API token        → 503
  2. authenticate_request          bearer/secret/NFT-format      → 401
  3. quota                         tier limiter denies           → 429 + rate headers
  4. body                          not JSON / no "request"       → 400
  5. forward                       upstream failure / non-2xx    → 500
  6. upstream "Error code"         "bad token" → 401, other → 400 (+ rate headers)
  7. success                       upstream JSON + rate headers

The quota is consumed at step 3, before the body is read, so a request with a
malformed body still counts against the caller's window.

The upstream API token is added server-side; clients never see it.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from osinthub.auth.middleware import Identity, authenticate_request
from osinthub.auth.tokens import IdentityClass
from osinthub.config import Config, UpstreamConfig
from osinthub.constants import (
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    UPSTREAM_TIMEOUT_S,
)
from osinthub.errors import BadRequestError, ConfigurationError, QuotaExceeded, UpstreamError
from osinthub.models.responses import build_error_response, build_rate_limit_headers
from osinthub.models.schemas import SearchRequest, parse_json_body
from osinthub.ratelimit.registry import LimiterRegistry
from osinthub.utils.logger import (
    PerformanceLogger,
    clear_request_id,
    get_logger,
    mask_wallet,
    set_request_id,
)
from osinthub.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["search"])

# Upstream error code meaning our API token was rejected.
_UPSTREAM_BAD_TOKEN = "bad token"


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for upstream and RPC calls.

    Created once at lifespan startup and stored in app.state.http_client.
    Never instantiated per-request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(UPSTREAM_TIMEOUT_S),
        follow_redirects=False,
    )


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def bind_request_id() -> AsyncIterator[None]:
    """Tag every log entry of one search request, auth failures included."""
    set_request_id(generate_ulid())
    try:
        yield
    finally:
        clear_request_id()


async def require_upstream_configured(request: Request) -> None:
    """Refuse every search with 503 until an upstream API token is configured."""
    config: Config = request.app.state.config
    if not config.upstream.api_token:
        logger.error("Search refused: upstream API token not configured")
        raise ConfigurationError(
            "The OSINT_API_TOKEN environment variable is not set.",
            remediation=(
                "Set OSINT_API_TOKEN (or upstream.api_token in .osinthub/config.yaml) "
                "to your API key from leakosintapi.com and restart the service."
            ),
        )


# ─── Upstream call ────────────────────────────────────────────────────────────


def build_upstream_payload(query: SearchRequest, api_token: str) -> dict[str, Any]:
    return {
        "token": api_token,
        "request": query.request,
        "limit": query.limit,
        "lang": query.lang,
        "type": "json",
    }


async def forward_search(
    http_client: httpx.AsyncClient,
    upstream: UpstreamConfig,
    query: SearchRequest,
) -> Any:
    """POST the query to the upstream provider and return its decoded JSON.

    Raises:
        UpstreamError: Connection failure, timeout, non-2xx status, or non-JSON body.
    """
    payload = build_upstream_payload(query, upstream.api_token or "")
    try:
        with PerformanceLogger("upstream_search", logger, warn_after_ms=upstream.timeout_s * 500):
            response = await http_client.post(
                upstream.url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=upstream.timeout_s,
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"OSINT API request failed: {type(exc).__name__}") from exc

    if response.status_code < 200 or response.status_code >= 300:
        raise UpstreamError(f"OSINT API returned status {response.status_code}")

    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError("OSINT API returned a non-JSON body") from exc


# ─── Search handler ───────────────────────────────────────────────────────────


@router.post(
    "/search",
    dependencies=[Depends(bind_request_id), Depends(require_upstream_configured)],
)
async def search(
    request: Request,
    identity: Identity = Depends(authenticate_request),
) -> Response:
    """Quota-gated search. See module docstring for the full pipeline."""
    config: Config = request.app.state.config
    limiters: LimiterRegistry = request.app.state.limiters
    http_client: httpx.AsyncClient = request.app.state.http_client

    # ── Quota ─────────────────────────────────────────────────────────────────
    limiter = limiters.for_class(identity.identity_class)
    result = limiter.check_limit(identity.key)
    if not result.allowed:
        logger.info(
            "Rate limit exceeded",
            identity_class=identity.identity_class.value,
            wallet=mask_wallet(identity.key)
            if identity.identity_class is IdentityClass.NFT_HOLDER
            else None,
            reset_time=result.reset_time,
        )
        raise QuotaExceeded(result, limiter.max_requests)

    rate_headers = build_rate_limit_headers(result, limiter.max_requests)

    # ── Body ──────────────────────────────────────────────────────────────────
    query = await parse_json_body(request, SearchRequest)
    if not query.request or not query.request.strip():
        raise BadRequestError("Search query is required")

    logger.info(
        "Search forwarded",
        identity_class=identity.identity_class.value,
        limit=query.limit,
        lang=query.lang,
        remaining=result.remaining,
    )

    # ── Upstream ──────────────────────────────────────────────────────────────
    data = await forward_search(http_client, config.upstream, query)

    error_code = data.get("Error code") if isinstance(data, dict) else None
    if error_code:
        logger.warning("Upstream returned an error code", error_code=str(error_code))
        if error_code == _UPSTREAM_BAD_TOKEN:
            response = build_error_response(
                401,
                "Invalid API Token",
                message=(
                    "The OSINT API token is invalid or expired. "
                    "Please check your OSINT_API_TOKEN environment variable."
                ),
            )
        else:
            response = build_error_response(400, f"OSINT API Error: {error_code}")
        response.headers.update(rate_headers)
        return response

    return JSONResponse(content=data, headers=rate_headers)
