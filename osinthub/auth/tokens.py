"""Bearer token codec for OSINT Hub.

Tokens are opaque to clients and never stored server-side. Their structure:

  NFT holder:    <session_secret>_nft_<wallet_address>_<issued_at_ms>
  Regular user:  <session_secret>_session_<ULID>

Validity is re-derived on every request: the token must start with the current
session secret, and an NFT token must parse to a wallet address.

Known limitation: the format carries no signature. Anyone who knows the
session secret can mint a token for an arbitrary wallet. The gateway is
expected to run behind a boundary where the secret stays private.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

from osinthub.constants import NFT_CLASS_MARKER, SESSION_CLASS_MARKER, TOKEN_DELIMITER
from osinthub.utils.ulid import generate_ulid

# Substring whose presence makes a token an NFT-holder token.
_NFT_MARKER_SUBSTRING: str = f"{TOKEN_DELIMITER}{NFT_CLASS_MARKER}{TOKEN_DELIMITER}"


class IdentityClass(str, enum.Enum):
    """Quota tier a token belongs to."""

    NFT_HOLDER = "nft_holder"
    REGULAR = "regular"


def classify(token: str) -> IdentityClass:
    """Structural check only; ownership is not re-verified."""
    if _NFT_MARKER_SUBSTRING in token:
        return IdentityClass.NFT_HOLDER
    return IdentityClass.REGULAR


def extract_key(token: str) -> Optional[str]:
    """Return the wallet address from an NFT token, or None if it is malformed.

    The session secret occupies the first segment, so the class marker must
    be the second segment and the wallet the third. A None result means the
    request must be rejected as unauthenticated.
    """
    parts = token.split(TOKEN_DELIMITER)
    if len(parts) >= 3 and parts[1] == NFT_CLASS_MARKER:
        return parts[2]
    return None


def has_valid_prefix(token: str, session_secret: str) -> bool:
    return bool(token) and token.startswith(session_secret)


def issue_nft_token(
    session_secret: str,
    wallet_address: str,
    issued_at_ms: Optional[int] = None,
) -> str:
    """Mint a token for a wallet whose NFT ownership was just verified."""
    if issued_at_ms is None:
        issued_at_ms = int(time.time() * 1000)
    return TOKEN_DELIMITER.join(
        [session_secret, NFT_CLASS_MARKER, wallet_address, str(issued_at_ms)]
    )


def issue_session_token(session_secret: str) -> str:
    """Mint a token for a successful login/password authentication.

    The suffix is a ULID, which has no ``_``, so it can never form the NFT
    marker substring.
    """
    return TOKEN_DELIMITER.join([session_secret, SESSION_CLASS_MARKER, generate_ulid()])
