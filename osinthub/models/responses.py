"""HTTP response builders for OSINT Hub.

Every non-2xx body the service returns is built here so the shapes stay
consistent between the exception handlers (osinthub/main.py) and the routers.

  build_rate_limit_headers()         — X-RateLimit-* headers for gated responses
  build_quota_exceeded_response()    — HTTP 429 with ISO reset time + rate headers
  build_configuration_error_response() — HTTP 503 with operator remediation
  build_error_response()             — generic {"error": ...} body for 4xx
  build_internal_error_response()    — HTTP 500; exception detail only outside production

The rate headers are attached to BOTH the 429 and the successful search
response, so clients can back off before they are denied.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.responses import JSONResponse

from osinthub.ratelimit.limiter import RateLimitResult


def format_reset_time(reset_time_ms: int) -> str:
    """Epoch ms → ISO 8601 UTC with millisecond precision (``...T12:00:00.000Z``)."""
    moment = datetime.fromtimestamp(reset_time_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_rate_limit_headers(result: RateLimitResult, limit: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }


def build_quota_exceeded_response(result: RateLimitResult, limit: int) -> JSONResponse:
    """HTTP 429 for a denied admission check.

    Body:
        {"error": "Rate limit exceeded",
         "message": "Too many requests. Limit resets at <ISO>",
         "resetTime": <epoch ms>}
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": f"Too many requests. Limit resets at {format_reset_time(result.reset_time)}",
            "resetTime": result.reset_time,
        },
        headers=build_rate_limit_headers(result, limit),
    )


def build_configuration_error_response(message: str, remediation: str) -> JSONResponse:
    """HTTP 503 for operator-side misconfiguration. Not the client's fault."""
    return JSONResponse(
        status_code=503,
        content={
            "error": "OSINT API not configured",
            "message": message,
            "details": remediation,
        },
    )


def build_error_response(
    status_code: int,
    error: Any,
    *,
    message: Optional[str] = None,
    details: Optional[Any] = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if message is not None:
        content["message"] = message
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def build_internal_error_response(
    exc: BaseException,
    *,
    include_detail: bool,
    details: str = "Failed to process request",
) -> JSONResponse:
    """HTTP 500. ``debug`` carries the exception only when ``include_detail``."""
    content: dict[str, Any] = {
        "error": "Internal server error",
        "details": details,
    }
    if include_detail:
        content["debug"] = {"type": type(exc).__name__, "message": str(exc)}
    return JSONResponse(status_code=500, content=content)
