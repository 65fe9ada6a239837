"""Health endpoint for OSINT Hub.

GET /health returns 503 until the lifespan has finished startup (the
``app.state.ready`` gate) and 200 afterwards with:

    {
      "status": "ok",
      "upstream_configured": true,
      "environment": "production",
      "active_users": 2,
      "rate_limits": {
        "nft_holder": {"limit": 200, "window_ms": 3600000,
                       "total_wallets": 3, "active_entries": 3},
        "regular":    {"limit": 50,  "window_ms": 3600000,
                       "total_wallets": 1, "active_entries": 1}
      }
    }

Reading the rate-limit stats sweeps expired entries first, so the counts
reflect identities with a live window. ``active_users`` counts credential
users that can currently log in; blocked users are excluded.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from osinthub.auth.users import UserStore
from osinthub.config import Config
from osinthub.ratelimit.registry import LimiterRegistry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "OSINT Hub is starting up.",
            },
        )

    config: Config = request.app.state.config
    limiters: LimiterRegistry = request.app.state.limiters
    user_store: UserStore = request.app.state.user_store
    return {
        "status": "ok",
        "upstream_configured": bool(config.upstream.api_token),
        "environment": config.session.environment,
        "active_users": len(user_store.list_active_users()),
        "rate_limits": limiters.describe(),
    }
