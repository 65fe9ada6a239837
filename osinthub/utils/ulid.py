"""ULID generation for OSINT Hub.

ULIDs (26-char Crockford Base32, time-sortable) are used for:
  - the random suffix of credential-login session tokens
  - the per-request ``request_id`` bound into structured logs

Uses the ``python-ulid`` library. Do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new ULID as a 26-character uppercase string.

    The Crockford alphabet has no underscore, so a ULID can be embedded in a
    ``_``-delimited token without shifting segment positions.
    """
    return str(ULID())
