"""Bearer token authentication for the search endpoint.

Provides ``authenticate_request()``: a FastAPI Depends()-compatible async
dependency that extracts the bearer token, checks it against the current
session secret, classifies it and derives the rate-limit key.

  Authorization header absent / not "Bearer <token>"   → 401 Authorization required
  token does not start with the session secret         → 401 Invalid token
  token carries the NFT marker but has no wallet slot  → 401 Invalid NFT token format

A malformed NFT token is never downgraded to the regular tier.

The dependency does not consult the rate limiter; the search handler does that
with the returned ``Identity``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from osinthub.auth.session import get_session_secret
from osinthub.auth.tokens import IdentityClass, classify, extract_key, has_valid_prefix
from osinthub.config import Config
from osinthub.errors import AuthError
from osinthub.utils.logger import get_logger, mask_wallet

logger = get_logger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+(\S+)$", re.IGNORECASE)


@dataclass(frozen=True)
class Identity:
    """Who is calling, as far as quota enforcement is concerned.

    Attributes:
        token:          The raw bearer token.
        identity_class: NFT_HOLDER or REGULAR.
        key:            Rate-limit key: the wallet address for NFT holders,
                        the raw token for regular users.
    """

    token: str
    identity_class: IdentityClass
    key: str


def extract_bearer_token(authorization: str) -> Optional[str]:
    if not authorization:
        return None
    m = _BEARER_RE.match(authorization.strip())
    return m.group(1) if m else None


def resolve_identity(token: str, session_secret: str) -> Identity:
    """Validate ``token`` and derive its Identity.

    Raises:
        AuthError: On a secret mismatch or a malformed NFT token.
    """
    if not has_valid_prefix(token, session_secret):
        raise AuthError("Invalid token")

    identity_class = classify(token)
    if identity_class is IdentityClass.NFT_HOLDER:
        wallet_address = extract_key(token)
        if not wallet_address:
            raise AuthError("Invalid NFT token format")
        return Identity(token=token, identity_class=identity_class, key=wallet_address)

    return Identity(token=token, identity_class=identity_class, key=token)


async def authenticate_request(request: Request) -> Identity:
    """FastAPI dependency: authenticate the bearer token.

    Raises:
        AuthError(401): Missing header, secret mismatch, or malformed NFT token.
    """
    token = extract_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        logger.warning(
            "Authentication failed: missing bearer token",
            path=str(request.url.path),
            method=request.method,
        )
        raise AuthError("Authorization required")

    config: Config = request.app.state.config
    try:
        identity = resolve_identity(token, get_session_secret(config.session))
    except AuthError as exc:
        logger.warning(
            "Authentication failed",
            reason=exc.message,
            path=str(request.url.path),
            method=request.method,
        )
        raise

    logger.debug(
        "Request authenticated",
        identity_class=identity.identity_class.value,
        wallet=mask_wallet(identity.key)
        if identity.identity_class is IdentityClass.NFT_HOLDER
        else None,
    )
    return identity
