"""Chain access for wallet-sync: network definition and the async observer."""

from wallet_sync.chain.network import DEFAULT_NETWORK, Network

__all__ = ["DEFAULT_NETWORK", "Network"]
