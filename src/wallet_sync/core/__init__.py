"""Reconciliation loop, block ticker and subscriber fan-out."""

from wallet_sync.core.monitor import TransactionMonitor
from wallet_sync.core.registry import SubscriberRegistry
from wallet_sync.core.ticker import BlockTicker

__all__ = ["BlockTicker", "SubscriberRegistry", "TransactionMonitor"]
