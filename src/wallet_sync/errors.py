"""Exception types shared across wallet-sync."""

from __future__ import annotations


class WalletSyncError(Exception):
    """Base class for all wallet-sync errors."""


class ChainUnavailableError(WalletSyncError):
    """The node could not be asked (connection refused, timeout, bad gateway).

    Distinct from the chain answering definitively: callers treat this as
    transient and retry on the next cycle.
    """


class DuplicateTransactionError(WalletSyncError):
    """A record with the same transaction hash already exists."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} already recorded.")
        self.tx_hash = tx_hash


class RecordNotFoundError(WalletSyncError):
    """No transaction record exists for the given hash."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} not found.")
        self.tx_hash = tx_hash
