"""Network definition for the watched EVM chain."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Network:
    """An EVM-compatible blockchain network."""

    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    explorer_url: str

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction."""
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


DEFAULT_NETWORK = Network(
    name="MintraxChain",
    chain_id=478549,
    rpc_url="https://rpc.mintrax.network",
    native_symbol="MTX",
    explorer_url="https://explorer.mintrax.network",
)
