"""On-chain NFT ownership lookups used by the NFT login endpoint."""

from __future__ import annotations

from osinthub.oracle.ownership import ChainBalance, OwnershipOracle, OwnershipResult, RpcError

__all__ = ["ChainBalance", "OwnershipOracle", "OwnershipResult", "RpcError"]
