"""Session secret resolution.

Every token starts with the session secret, so all workers of one deployment
must agree on it. Resolution order:

  1. ``session.secret`` / ``OSINT_SESSION_SECRET`` when configured.
  2. Otherwise SHA-256 of ``osint-hub-<deployment_url>-<environment>``,
     with ``localhost`` standing in for a missing deployment URL.

The derived value is stable per deployment and recomputed on demand; there
is nothing to cache or tear down. Changing either input invalidates every
outstanding token.
"""

from __future__ import annotations

import hashlib

from osinthub.config import SessionConfig


def derive_session_secret(deployment_url: str | None, environment: str) -> str:
    base = f"osint-hub-{deployment_url or 'localhost'}-{environment}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def get_session_secret(session: SessionConfig) -> str:
    if session.secret:
        return session.secret
    return derive_session_secret(session.deployment_url, session.environment)
