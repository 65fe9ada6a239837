"""NFT ownership oracle — on-chain ``balanceOf`` lookups over JSON-RPC.

For each configured chain the oracle issues an ``eth_call`` of
``balanceOf(wallet)`` against the NFT contract, trying the chain's RPC
endpoints in order until one answers.

Failure policy (availability over strictness):
  - An endpoint failure is any of: connection error, timeout, an unparseable
    endpoint URL, non-2xx HTTP status, a JSON-RPC ``error`` member, or a
    ``result`` that is not a non-negative hex integer. The next endpoint is
    then tried.
  - When every endpoint of a chain fails, that chain's balance is 0. The
    failure is logged, never raised.
  - Chains are queried independently; one chain failing never prevents the
    other from being read.
  - ``owned`` is True iff the sum of all chain balances is > 0.

Every endpoint call is bounded by ``timeout_s`` (10 s by default) in total,
enforced with ``asyncio.wait_for`` so the in-flight request is cancelled on
expiry.

No signature verification happens here. The wallet address is trusted as
supplied by the client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx

from osinthub.config import ChainConfig, OracleConfig
from osinthub.constants import BALANCE_OF_SELECTOR
from osinthub.utils.logger import get_logger, mask_wallet

logger = get_logger(__name__)


class RpcError(Exception):
    """One RPC endpoint failed to produce a balance."""


# ─── Result Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChainBalance:
    name: str
    balance: int
    contract_address: str

    @property
    def has_nft(self) -> bool:
        return self.balance > 0


@dataclass
class OwnershipResult:
    """Evidence returned by ``OwnershipOracle.has_ownership()``."""

    base: ChainBalance
    monad: ChainBalance
    balances: list[ChainBalance] = field(init=False)

    def __post_init__(self) -> None:
        self.balances = [self.base, self.monad]

    @property
    def total_balance(self) -> int:
        return sum(chain.balance for chain in self.balances)

    @property
    def owned(self) -> bool:
        return self.total_balance > 0

    def to_details(self) -> dict[str, Any]:
        """Client-facing ``nftDetails`` object."""

        def _chain(chain: ChainBalance) -> dict[str, Any]:
            return {
                "hasNFT": chain.has_nft,
                "balance": chain.balance,
                "contractAddress": chain.contract_address,
                "network": chain.name,
            }

        return {
            "totalBalance": self.total_balance,
            "baseBalance": self.base.balance,
            "monadBalance": self.monad.balance,
            "networks": [
                {
                    "name": chain.name,
                    "balance": chain.balance,
                    "contractAddress": chain.contract_address,
                }
                for chain in self.balances
                if chain.has_nft
            ],
            "base": _chain(self.base),
            "monad": _chain(self.monad),
        }


# ─── Call Encoding ────────────────────────────────────────────────────────────


def encode_balance_of(wallet_address: str) -> str:
    """ABI-encode ``balanceOf(wallet_address)`` as eth_call data."""
    address = wallet_address[2:] if wallet_address.lower().startswith("0x") else wallet_address
    return BALANCE_OF_SELECTOR + address.lower().rjust(64, "0")


def build_balance_of_payload(contract_address: str, wallet_address: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "eth_call",
        "params": [
            {"to": contract_address, "data": encode_balance_of(wallet_address)},
            "latest",
        ],
        "id": 1,
    }


def parse_balance_result(body: Any) -> int:
    """Extract the integer balance from a JSON-RPC response body.

    Raises:
        RpcError: If the body carries an ``error`` member or the result is not
                  a non-negative hex-encoded integer.
    """
    if not isinstance(body, dict):
        raise RpcError(f"Unexpected RPC response type: {type(body).__name__}")
    error = body.get("error")
    if error:
        message = error.get("message", error) if isinstance(error, dict) else error
        raise RpcError(f"RPC Error: {message}")
    result = body.get("result")
    if not isinstance(result, str):
        raise RpcError(f"RPC result missing or not a string: {result!r}")
    try:
        balance = int(result, 16)
    except ValueError as exc:
        raise RpcError(f"RPC result is not a hex integer: {result!r}") from exc
    if balance < 0:
        raise RpcError(f"RPC result is a negative balance: {result!r}")
    return balance


# ─── Oracle ───────────────────────────────────────────────────────────────────


class OwnershipOracle:
    """Answers "does this wallet hold the NFT on any configured chain?".

    Args:
        http_client: Shared ``httpx.AsyncClient`` (owned by the application lifespan).
        config:      Chains, contracts, endpoint lists and per-call timeout.
    """

    def __init__(self, http_client: httpx.AsyncClient, config: OracleConfig) -> None:
        self._client = http_client
        self._config = config

    async def _fetch_balance(self, rpc_url: str, contract_address: str, wallet_address: str) -> int:
        response = await self._client.post(
            rpc_url,
            json=build_balance_of_payload(contract_address, wallet_address),
            headers={"Content-Type": "application/json"},
        )
        if response.status_code < 200 or response.status_code >= 300:
            raise RpcError(f"HTTP {response.status_code}: {response.reason_phrase}")
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError("RPC response is not JSON") from exc
        return parse_balance_result(body)

    async def check_balance(self, rpc_url: str, contract_address: str, wallet_address: str) -> int:
        """Query one endpoint, bounded by the configured timeout.

        Raises:
            RpcError: On any endpoint failure, including timeout.
        """
        try:
            return await asyncio.wait_for(
                self._fetch_balance(rpc_url, contract_address, wallet_address),
                timeout=self._config.timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise RpcError(f"Timed out after {self._config.timeout_s}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RpcError(f"{type(exc).__name__}: {exc}") from exc

    async def check_balance_with_fallback(self, chain: ChainConfig, wallet_address: str) -> int:
        """Try each endpoint of ``chain`` in order; 0 when all of them fail."""
        for rpc_url in chain.rpc_urls:
            try:
                balance = await self.check_balance(rpc_url, chain.contract_address, wallet_address)
            except RpcError as exc:
                logger.warning(
                    "RPC endpoint failed, trying next",
                    chain=chain.name,
                    rpc_url=rpc_url,
                    error=str(exc),
                )
                continue
            return balance

        logger.warning(
            "All RPC endpoints failed, treating balance as 0",
            chain=chain.name,
            endpoints=len(chain.rpc_urls),
            wallet=mask_wallet(wallet_address),
        )
        return 0

    async def _chain_balance(self, chain: ChainConfig, wallet_address: str) -> ChainBalance:
        balance = await self.check_balance_with_fallback(chain, wallet_address)
        return ChainBalance(
            name=chain.name,
            balance=balance,
            contract_address=chain.contract_address,
        )

    async def has_ownership(self, wallet_address: str) -> OwnershipResult:
        """Read the wallet's NFT balance on every chain and aggregate."""
        base, monad = await asyncio.gather(
            self._chain_balance(self._config.base, wallet_address),
            self._chain_balance(self._config.monad, wallet_address),
        )
        result = OwnershipResult(base=base, monad=monad)
        logger.info(
            "NFT ownership checked",
            wallet=mask_wallet(wallet_address),
            owned=result.owned,
            base_balance=base.balance,
            monad_balance=monad.balance,
        )
        return result
