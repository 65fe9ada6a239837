"""Shared constants for OSINT Hub.

Quota defaults, token wire-format markers, chain endpoints and timeouts used
across modules are defined here. Values that operators may want to change are
also exposed through ``osinthub.config``; the constants below are the coded
defaults that config falls back to.
"""

# ─── Rate Limits ─────────────────────────────────────────────────────────────

# Requests per window for wallets that hold an authorized NFT.
NFT_HOLDER_MAX_REQUESTS: int = 200

# Requests per window for credential (login/password) users.
REGULAR_MAX_REQUESTS: int = 50

# Fixed window length. Both tiers share the same window by default.
RATE_LIMIT_WINDOW_MS: int = 60 * 60 * 1000  # 1 hour

# How often expired entries are swept out of limiter memory.
RATE_LIMIT_SWEEP_INTERVAL_S: float = 5 * 60.0  # 5 minutes

# Per-client-IP cap on the login endpoints (slowapi syntax).
AUTH_RATE_LIMIT: str = "10/minute"

# ─── Token Wire Format ───────────────────────────────────────────────────────

TOKEN_DELIMITER: str = "_"

# Identity-class marker for NFT holder tokens. classify() looks for
# DELIMITER + MARKER + DELIMITER anywhere in the token.
NFT_CLASS_MARKER: str = "nft"

# Marker for credential-login tokens. Must never contain the NFT marker.
SESSION_CLASS_MARKER: str = "session"

# Message the wallet owner signs client-side; the server only checks its shape.
NFT_LOGIN_MESSAGE_TEMPLATE: str = "Login to OSINT HUB with wallet: {wallet_address}"

# ─── Ownership Oracle ────────────────────────────────────────────────────────

# ERC-721 balanceOf(address) function selector.
BALANCE_OF_SELECTOR: str = "0x70a08231"

# Total budget per RPC endpoint call, including connect and read.
RPC_TIMEOUT_S: float = 10.0

BASE_CHAIN_NAME: str = "Base Mainnet"
BASE_MAINNET_RPCS: tuple[str, ...] = (
    "https://mainnet.base.org",
    "https://base-mainnet.public.blastapi.io",
    "https://base.gateway.tenderly.co",
    "https://base-rpc.publicnode.com",
)
NFT_CONTRACT_ADDRESS_BASE: str = "0x8cf392D33050F96cF6D0748486490d3dEae52564"

MONAD_CHAIN_NAME: str = "Monad Testnet"
MONAD_TESTNET_RPCS: tuple[str, ...] = ("https://testnet-rpc.monad.xyz",)
NFT_CONTRACT_ADDRESS_MONAD: str = "0xC1C4d4A5A384DE53BcFadB43D0e8b08966195757"

# ─── Upstream Search Provider ────────────────────────────────────────────────

UPSTREAM_URL: str = "https://leakosintapi.com/"
UPSTREAM_TIMEOUT_S: float = 30.0

DEFAULT_SEARCH_LIMIT: int = 100
DEFAULT_SEARCH_LANG: str = "ru"

# ─── HTTP Client Pool ────────────────────────────────────────────────────────

# Matches uvicorn --limit-concurrency in osinthub/run.py.
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 100
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
