"""Authentication endpoints — token issuance.

Provides:
  POST /api/auth/login     — login/password against provisioned users
  POST /api/auth/nft-auth  — wallet login gated on on-chain NFT ownership

Both return ``{"success": true, "user": {...}, "token": "..."}`` on success.
Tokens are built by osinthub/auth/tokens.py and are not stored anywhere.

Both endpoints are capped per client IP by slowapi (LOGIN_RATE_LIMIT).
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from osinthub.auth.limiter import LOGIN_RATE_LIMIT, limiter
from osinthub.auth.session import get_session_secret
from osinthub.auth.tokens import issue_nft_token, issue_session_token
from osinthub.auth.users import UserStore
from osinthub.config import Config
from osinthub.constants import NFT_LOGIN_MESSAGE_TEMPLATE
from osinthub.errors import AuthError, BadRequestError, ForbiddenError
from osinthub.models.schemas import LoginRequest, NftAuthRequest, parse_json_body
from osinthub.oracle.ownership import OwnershipOracle
from osinthub.utils.logger import get_logger, mask_wallet

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])

# 0x + 40 hex chars. Also guarantees the address has no token delimiter in it.
_WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _nft_user(wallet_address: str) -> dict[str, Any]:
    return {
        "id": wallet_address,
        "login": f"{wallet_address[:6]}...{wallet_address[-4:]}",
        "email": f"{wallet_address}@nft.holder",
        "role": "nft_holder",
        "status": "active",
        "walletAddress": wallet_address,
        "createdAt": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


@router.post("/login")
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(request: Request) -> dict[str, Any]:
    """Authenticate with login/password and return a regular-tier token.

    Raises:
        HTTP 400: Body is not JSON or login/password missing.
        HTTP 401: No active user matches.
    """
    body = await parse_json_body(request, LoginRequest)
    if not body.login or not body.password:
        raise BadRequestError("Login and password are required")

    store: UserStore = request.app.state.user_store
    # bcrypt verification is CPU-bound; keep it off the event loop.
    user = await asyncio.to_thread(store.find_user, body.login, body.password)
    if user is None:
        logger.warning("Login failed", login=body.login)
        raise AuthError("Invalid credentials")

    config: Config = request.app.state.config
    token = issue_session_token(get_session_secret(config.session))

    logger.info("Login successful", login=user.login, role=user.role)
    return {
        "success": True,
        "user": user.to_public_dict(),
        "token": token,
    }


@router.post("/nft-auth")
@limiter.limit(LOGIN_RATE_LIMIT)
async def nft_auth(request: Request) -> dict[str, Any]:
    """Authenticate a wallet by NFT ownership and return an NFT-tier token.

    The client must send the wallet address, a signature and the exact login
    message. The signature is required but not verified; access is decided by
    the on-chain balance alone.

    Raises:
        HTTP 400: Invalid JSON, missing fields, bad wallet address or message.
        HTTP 403: The wallet holds no NFT on any configured chain.
    """
    body = await parse_json_body(request, NftAuthRequest)
    wallet_address = body.wallet_address

    if not wallet_address or not body.signature or not body.message:
        raise BadRequestError("Wallet address, signature, and message are required")

    if not _WALLET_ADDRESS_RE.match(wallet_address):
        raise BadRequestError("Invalid wallet address")

    if body.message != NFT_LOGIN_MESSAGE_TEMPLATE.format(wallet_address=wallet_address):
        logger.info("NFT login rejected: message mismatch", wallet=mask_wallet(wallet_address))
        raise BadRequestError("Invalid message format")

    oracle: OwnershipOracle = request.app.state.oracle
    ownership = await oracle.has_ownership(wallet_address)
    if not ownership.owned:
        logger.info("NFT login denied: no NFT found", wallet=mask_wallet(wallet_address))
        raise ForbiddenError(
            "Access denied: You must own an NFT from the authorized collection to use this service",
            details=ownership.to_details(),
        )

    config: Config = request.app.state.config
    token = issue_nft_token(get_session_secret(config.session), wallet_address)

    logger.info(
        "NFT login successful",
        wallet=mask_wallet(wallet_address),
        total_balance=ownership.total_balance,
    )
    return {
        "success": True,
        "user": _nft_user(wallet_address),
        "token": token,
        "message": "NFT ownership verified. Access granted!",
        "nftDetails": ownership.to_details(),
    }
