"""Ledger store: durable view over transaction records."""

from __future__ import annotations

import logging
import sqlite3
from enum import Enum

from wallet_sync.errors import DuplicateTransactionError
from wallet_sync.storage.database import Database
from wallet_sync.storage.models import TransactionRecord, TransactionStatus

logger = logging.getLogger("wallet_sync.ledger")

# Fields the reconciliation loop is allowed to write.
RECONCILED_FIELDS = frozenset({"status", "gas_used", "gas_price", "block_number"})

_COLUMNS = (
    "id",
    "wallet_address",
    "tx_hash",
    "from_address",
    "to_address",
    "value",
    "timestamp",
    "status",
    "type",
    "token_address",
    "token_symbol",
    "token_decimals",
    "gas_used",
    "gas_price",
    "block_number",
    "submitted_block",
)


def _to_column(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return value


class LedgerStore:
    """Transaction records queryable by wallet, hash and pending status.

    Hash and address matching is case-insensitive.  Records are never
    deleted, and terminal records are never rewritten: every status write
    is conditional on the row still being ``pending``.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_pending(self) -> list[TransactionRecord]:
        rows = await self.db.fetch_all(
            "SELECT * FROM transactions WHERE status = ?",
            (TransactionStatus.PENDING.value,),
        )
        return [TransactionRecord.model_validate(r) for r in rows]

    async def get_by_hash(self, tx_hash: str) -> TransactionRecord | None:
        row = await self.db.fetch_one(
            "SELECT * FROM transactions WHERE LOWER(tx_hash) = LOWER(?)",
            (tx_hash,),
        )
        if row is None:
            return None
        return TransactionRecord.model_validate(row)

    async def list_by_wallet(self, wallet_address: str) -> list[TransactionRecord]:
        """All records owned by *wallet_address*, newest first."""
        rows = await self.db.fetch_all(
            "SELECT * FROM transactions WHERE LOWER(wallet_address) = LOWER(?) "
            "ORDER BY timestamp DESC",
            (wallet_address,),
        )
        return [TransactionRecord.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, record: TransactionRecord) -> TransactionRecord:
        """Persist a new record.

        Raises
        ------
        DuplicateTransactionError
            If a record with the same hash (in any letter case) exists.
        """
        values = record.model_dump()
        values["timestamp"] = record.timestamp.isoformat()
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            await self.db.execute(
                f"INSERT INTO transactions ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(_to_column(values[c]) for c in _COLUMNS),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateTransactionError(record.tx_hash) from exc
        logger.info(
            f"Recorded {record.type.value} {record.tx_hash} for {record.wallet_address} "
            f"({record.status.value})"
        )
        return record

    async def update_fields(self, tx_hash: str, **fields: object) -> bool:
        """Update reconciliation-owned fields of a still-pending record.

        Only ``status``, ``gas_used``, ``gas_price`` and ``block_number`` may
        be written.  Returns ``False`` when no pending record matched (the
        record is missing or already terminal).
        """
        if not fields:
            return False
        illegal = set(fields) - RECONCILED_FIELDS
        if illegal:
            raise ValueError(f"Cannot update immutable field(s): {sorted(illegal)}")

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = tuple(_to_column(v) for v in fields.values())
        cursor = await self.db.execute(
            f"UPDATE transactions SET {assignments} "
            "WHERE LOWER(tx_hash) = LOWER(?) AND status = ?",
            params + (tx_hash, TransactionStatus.PENDING.value),
        )
        return cursor.rowcount > 0
