"""Root test configuration for OSINT Hub.

Every test starts from a clean environment: OSINT_* variables that the config
loader or user provisioning would pick up are removed, and the slowapi login
limiter storage is reset so login tests do not bleed 429s into each other.

Shared helpers:
  FakeClock            — injectable epoch-ms clock for RateLimiter
  make_state_app()     — create_app() with app.state populated (no lifespan)
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import pytest
from fastapi import FastAPI

from osinthub.auth.users import User, UserStore, hash_password
from osinthub.config import Config
from osinthub.oracle.ownership import OwnershipOracle
from osinthub.ratelimit.registry import LimiterRegistry
from osinthub.ratelimit.limiter import RateLimiter

_OSINT_ENV_VARS = (
    "OSINT_API_TOKEN",
    "OSINT_UPSTREAM_URL",
    "OSINT_SESSION_SECRET",
    "OSINT_DEPLOYMENT_URL",
    "OSINT_ENV",
    "OSINT_PORT",
    "OSINT_CONFIG",
    "OSINT_JAGUAR_PASSWORD",
    "OSINT_ADMIN_PASSWORD",
)

TEST_SECRET = "secretXYZ"
TEST_API_TOKEN = "upstream-api-token"


@pytest.fixture(autouse=True)
def clean_osint_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _OSINT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for index in range(1, 10):
        monkeypatch.delenv(f"OSINT_USER_{index}", raising=False)


@pytest.fixture(autouse=True)
def reset_login_limiter() -> None:
    """Reset the in-memory slowapi storage between tests."""
    from osinthub.auth.limiter import limiter

    limiter.reset()


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start_ms=1_700_000_000_000)


def make_config(**session_overrides: Any) -> Config:
    config = Config.defaults()
    config.session.secret = TEST_SECRET
    config.upstream.api_token = TEST_API_TOKEN
    config.upstream.url = "https://upstream.test/"
    for key, value in session_overrides.items():
        setattr(config.session, key, value)
    return config


def make_state_app(
    *,
    config: Optional[Config] = None,
    upstream_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    clock: Optional[Callable[[], int]] = None,
    nft_limit: int = 3,
    regular_limit: int = 2,
    window_ms: int = 60_000,
    users: Optional[list[User]] = None,
    oracle: Any = None,
) -> FastAPI:
    """Build an app whose state mirrors a completed lifespan, without running it."""
    from osinthub.main import create_app

    config = config or make_config()
    limiter_kwargs: dict[str, Any] = {"window_ms": window_ms}
    if clock is not None:
        limiter_kwargs["clock"] = clock

    handler = upstream_handler or (lambda request: httpx.Response(200, json={"List": {}}))
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    application = create_app()
    application.state.config = config
    application.state.http_client = http_client
    application.state.limiters = LimiterRegistry(
        nft_holder=RateLimiter(max_requests=nft_limit, name="nft_holder", **limiter_kwargs),
        regular=RateLimiter(max_requests=regular_limit, name="regular", **limiter_kwargs),
    )
    application.state.oracle = oracle or OwnershipOracle(http_client, config.oracle)
    application.state.user_store = UserStore(users or [])
    application.state.ready = True
    return application


def make_user(login: str = "alice", password: str = "wonderland", **kwargs: Any) -> User:
    return User(
        id=kwargs.pop("id", "1"),
        login=login,
        email=kwargs.pop("email", f"{login}@example.com"),
        password_hash=hash_password(password, rounds=4),
        **kwargs,
    )


@pytest.fixture
def state_app() -> Callable[..., FastAPI]:
    """Factory fixture wrapping make_state_app()."""
    return make_state_app


@pytest.fixture
def user_factory() -> Callable[..., User]:
    return make_user


@pytest.fixture
def gateway_config() -> Config:
    return make_config()
