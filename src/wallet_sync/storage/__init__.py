"""wallet-sync storage layer -- async SQLite database, ledger store and Pydantic models."""

from wallet_sync.storage.database import Database, get_database
from wallet_sync.storage.ledger import LedgerStore
from wallet_sync.storage.models import (
    Receipt,
    TransactionCreate,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Database",
    "get_database",
    "LedgerStore",
    "Receipt",
    "TransactionCreate",
    "TransactionRecord",
    "TransactionStatus",
    "TransactionType",
]
