"""OSINT Hub authentication package.

Public API:
  - IdentityClass, classify(), extract_key()    — token classification (tokens.py)
  - issue_nft_token(), issue_session_token()    — token issuance (tokens.py)
  - get_session_secret()                        — token prefix (session.py)
  - Identity, authenticate_request()            — FastAPI dependency (middleware.py)
  - User, UserStore, load_users_from_env()      — credential users (users.py)

The HTTP endpoints live in osinthub/auth/router.py and are imported by
osinthub/main.py directly.
"""

from __future__ import annotations

from osinthub.auth.middleware import Identity, authenticate_request
from osinthub.auth.session import get_session_secret
from osinthub.auth.tokens import (
    IdentityClass,
    classify,
    extract_key,
    issue_nft_token,
    issue_session_token,
)
from osinthub.auth.users import User, UserStore, load_users_from_env

__all__ = [
    "Identity",
    "IdentityClass",
    "User",
    "UserStore",
    "authenticate_request",
    "classify",
    "extract_key",
    "get_session_secret",
    "issue_nft_token",
    "issue_session_token",
    "load_users_from_env",
]
