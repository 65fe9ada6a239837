"""Exception taxonomy for OSINT Hub.

Each exception maps to exactly one HTTP status. The mapping is applied by the
exception handlers registered in ``create_app()`` (osinthub/main.py), which
render the bodies via ``osinthub.models.responses``.

  AuthError           → 401  missing/invalid bearer, malformed NFT token
  BadRequestError     → 400  malformed JSON body, missing query, bad wallet
  ForbiddenError      → 403  NFT login for a wallet without the NFT
  QuotaExceeded       → 429  rate limit hit; client may retry after reset_time
  ConfigurationError  → 503  upstream API token not configured
  UpstreamError       → 500  upstream provider failed or returned non-2xx

Ownership-oracle RPC failures have no entry here: they degrade to a zero
balance inside the oracle and never reach a handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from osinthub.ratelimit.limiter import RateLimitResult


class OsintHubError(Exception):
    """Base class for all errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(OsintHubError):
    status_code = 401


class BadRequestError(OsintHubError):
    status_code = 400


class ForbiddenError(OsintHubError):
    """Authenticated request refused. ``details`` is returned to the client."""

    status_code = 403

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details


class QuotaExceeded(OsintHubError):
    """Raised by the search gateway when the limiter denies admission.

    Carries the denied ``RateLimitResult`` and the tier's ``limit`` so the
    429 response can include the same rate headers as a successful one.
    """

    status_code = 429

    def __init__(self, result: "RateLimitResult", limit: int) -> None:
        super().__init__("Rate limit exceeded")
        self.result = result
        self.limit = limit


class ConfigurationError(OsintHubError):
    """Operator-side misconfiguration. ``remediation`` tells the operator what to set."""

    status_code = 503

    def __init__(self, message: str, remediation: str = "") -> None:
        super().__init__(message)
        self.remediation = remediation


class UpstreamError(OsintHubError):
    status_code = 500
