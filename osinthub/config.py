"""Config loading for OSINT Hub.

Reads `.osinthub/config.yaml` (or `~/.osinthub/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided, for testing or explicit override)
  2. OSINT_CONFIG environment variable (if set)
  3. `.osinthub/config.yaml` (working directory, for development)
  4. `~/.osinthub/config.yaml` (home directory, for production deployments)

Environment variable overrides (applied after the file, so env always wins):
  OSINT_API_TOKEN       — upstream.api_token
  OSINT_UPSTREAM_URL    — upstream.url
  OSINT_SESSION_SECRET  — session.secret
  OSINT_DEPLOYMENT_URL  — session.deployment_url (input to the derived secret)
  OSINT_ENV             — session.environment ("production" | "development" | ...)
  OSINT_PORT            — server.port

Example::

    version: 1
    server:
      host: 0.0.0.0
      port: 3000
    rate_limits:
      nft_holder_max_requests: 200
      regular_max_requests: 50
      window_ms: 3600000
      sweep_interval_s: 300
    oracle:
      timeout_s: 10
      base:
        rpc_urls: ["https://mainnet.base.org"]
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import httpx
import yaml

from osinthub.constants import (
    BASE_CHAIN_NAME,
    BASE_MAINNET_RPCS,
    MONAD_CHAIN_NAME,
    MONAD_TESTNET_RPCS,
    NFT_CONTRACT_ADDRESS_BASE,
    NFT_CONTRACT_ADDRESS_MONAD,
    NFT_HOLDER_MAX_REQUESTS,
    RATE_LIMIT_SWEEP_INTERVAL_S,
    RATE_LIMIT_WINDOW_MS,
    REGULAR_MAX_REQUESTS,
    RPC_TIMEOUT_S,
    TOKEN_DELIMITER,
    UPSTREAM_TIMEOUT_S,
    UPSTREAM_URL,
)
from osinthub.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".osinthub/config.yaml",
    os.path.expanduser("~/.osinthub/config.yaml"),
]

# Environments in which error responses may include exception detail.
NON_PRODUCTION_ENVIRONMENTS: frozenset[str] = frozenset({"development", "dev", "test", "local"})


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class UpstreamConfig:
    """Upstream OSINT search provider.

    api_token is None until configured; the search endpoint answers 503 while
    it is missing.
    """

    url: str = UPSTREAM_URL
    api_token: Optional[str] = None
    timeout_s: float = UPSTREAM_TIMEOUT_S


@dataclass
class RateLimitConfig:
    """Quota tiers. Both tiers share window_ms and sweep_interval_s."""

    nft_holder_max_requests: int = NFT_HOLDER_MAX_REQUESTS
    regular_max_requests: int = REGULAR_MAX_REQUESTS
    window_ms: int = RATE_LIMIT_WINDOW_MS
    sweep_interval_s: float = RATE_LIMIT_SWEEP_INTERVAL_S


@dataclass
class ChainConfig:
    """One blockchain queried by the ownership oracle.

    rpc_urls is tried in order; the first endpoint that answers wins.
    """

    name: str
    contract_address: str
    rpc_urls: list[str] = field(default_factory=list)


@dataclass
class OracleConfig:
    timeout_s: float = RPC_TIMEOUT_S
    base: ChainConfig = field(
        default_factory=lambda: ChainConfig(
            name=BASE_CHAIN_NAME,
            contract_address=NFT_CONTRACT_ADDRESS_BASE,
            rpc_urls=list(BASE_MAINNET_RPCS),
        )
    )
    monad: ChainConfig = field(
        default_factory=lambda: ChainConfig(
            name=MONAD_CHAIN_NAME,
            contract_address=NFT_CONTRACT_ADDRESS_MONAD,
            rpc_urls=list(MONAD_TESTNET_RPCS),
        )
    )


@dataclass
class SessionConfig:
    """Inputs to the session secret (see osinthub/auth/session.py)."""

    secret: Optional[str] = None
    deployment_url: Optional[str] = None
    environment: str = "production"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() not in NON_PRODUCTION_ENVIRONMENTS


@dataclass
class Config:
    """Root configuration object populated from .osinthub/config.yaml.

    All fields have safe defaults; OSINT Hub can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On non-positive quotas, windows, intervals or timeouts.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 3000),
        )

        # ── Upstream ──────────────────────────────────────────────────────────
        upstream_raw = raw.get("upstream") or {}
        upstream = UpstreamConfig(
            url=upstream_raw.get("url", UPSTREAM_URL),
            api_token=upstream_raw.get("api_token"),
            timeout_s=_positive(upstream_raw, "upstream.timeout_s", "timeout_s", UPSTREAM_TIMEOUT_S),
        )

        # ── Rate limits ───────────────────────────────────────────────────────
        limits_raw = raw.get("rate_limits") or {}
        rate_limits = RateLimitConfig(
            nft_holder_max_requests=_positive(
                limits_raw,
                "rate_limits.nft_holder_max_requests",
                "nft_holder_max_requests",
                NFT_HOLDER_MAX_REQUESTS,
            ),
            regular_max_requests=_positive(
                limits_raw,
                "rate_limits.regular_max_requests",
                "regular_max_requests",
                REGULAR_MAX_REQUESTS,
            ),
            window_ms=_positive(limits_raw, "rate_limits.window_ms", "window_ms", RATE_LIMIT_WINDOW_MS),
            sweep_interval_s=_positive(
                limits_raw,
                "rate_limits.sweep_interval_s",
                "sweep_interval_s",
                RATE_LIMIT_SWEEP_INTERVAL_S,
            ),
        )

        # ── Oracle ────────────────────────────────────────────────────────────
        oracle_raw = raw.get("oracle") or {}
        oracle_defaults = OracleConfig()
        oracle = OracleConfig(
            timeout_s=_positive(oracle_raw, "oracle.timeout_s", "timeout_s", RPC_TIMEOUT_S),
            base=_chain_from_dict(oracle_raw.get("base") or {}, oracle_defaults.base),
            monad=_chain_from_dict(oracle_raw.get("monad") or {}, oracle_defaults.monad),
        )

        # ── Session ───────────────────────────────────────────────────────────
        session_raw = raw.get("session") or {}
        session = SessionConfig(
            secret=session_raw.get("secret"),
            deployment_url=session_raw.get("deployment_url"),
            environment=session_raw.get("environment", "production"),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            upstream=upstream,
            rate_limits=rate_limits,
            oracle=oracle,
            session=session,
            path=path,
        )


def _config_error(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


def _positive(section: dict, label: str, key: str, default: Any) -> Any:
    """Read a numeric value that must be > 0, exiting on anything else."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        _config_error(f"{label} must be a positive number, got {value!r}.")
    return value


def _chain_from_dict(raw: dict, default: ChainConfig) -> ChainConfig:
    rpc_urls = raw.get("rpc_urls", default.rpc_urls)
    if isinstance(rpc_urls, str):
        rpc_urls = [rpc_urls]
    if not isinstance(rpc_urls, list) or not rpc_urls:
        _config_error(
            f"oracle chain '{default.name}' needs a non-empty rpc_urls list, got {rpc_urls!r}."
        )
    for url in rpc_urls:
        try:
            httpx.URL(str(url))
        except httpx.InvalidURL as exc:
            _config_error(f"oracle chain '{default.name}' has an invalid rpc_url {url!r}: {exc}")
    return ChainConfig(
        name=raw.get("name", default.name),
        contract_address=raw.get("contract_address", default.contract_address),
        rpc_urls=[str(url) for url in rpc_urls],
    )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate OSINT Hub configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises
    SystemExit(1). Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid values, or invalid ``OSINT_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("OSINT_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "OSINT Hub refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "OSINT Hub is configured to bind on 0.0.0.0 (all interfaces)",
            port=config.server.port,
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        environment=config.session.environment,
        upstream_configured=config.upstream.api_token is not None,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If OSINT_PORT is set but not a valid integer.
    """
    api_token = os.environ.get("OSINT_API_TOKEN")
    if api_token:
        config.upstream.api_token = api_token

    upstream_url = os.environ.get("OSINT_UPSTREAM_URL")
    if upstream_url:
        config.upstream.url = upstream_url

    session_secret = os.environ.get("OSINT_SESSION_SECRET")
    if session_secret:
        config.session.secret = session_secret

    deployment_url = os.environ.get("OSINT_DEPLOYMENT_URL")
    if deployment_url:
        config.session.deployment_url = deployment_url

    environment = os.environ.get("OSINT_ENV")
    if environment:
        config.session.environment = environment

    env_port = os.environ.get("OSINT_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(f"OSINT_PORT environment variable is not a valid integer: '{env_port}'")

    # The secret is the first token segment; a delimiter inside it would shift
    # the class marker out of position and break NFT token parsing.
    if config.session.secret and TOKEN_DELIMITER in config.session.secret:
        _config_error(
            f"session secret must not contain '{TOKEN_DELIMITER}' "
            "(check OSINT_SESSION_SECRET / session.secret)."
        )
