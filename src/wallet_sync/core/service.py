"""WalletSyncService - wires the ledger, chain observer, registry and background tasks."""

from __future__ import annotations

import logging
from pathlib import Path

from wallet_sync.chain.observer import ChainObserver
from wallet_sync.config import AppConfig, resolve_db_path
from wallet_sync.core import events
from wallet_sync.core.monitor import TransactionMonitor
from wallet_sync.core.registry import SubscriberRegistry
from wallet_sync.core.ticker import BlockTicker
from wallet_sync.errors import ChainUnavailableError
from wallet_sync.storage.database import Database, get_database
from wallet_sync.storage.ledger import LedgerStore
from wallet_sync.storage.models import TransactionCreate, TransactionRecord

logger = logging.getLogger("wallet_sync.service")


class WalletSyncService:
    """Owns one instance of every collaborator for the lifetime of the server.

    The registry is shared by the monitor, the ticker and the WebSocket
    endpoint; nothing here is process-global.
    """

    def __init__(
        self,
        config: AppConfig,
        db: Database,
        observer: ChainObserver | None = None,
    ) -> None:
        self.config = config
        self.db = db
        self.ledger = LedgerStore(db)
        self._owns_observer = observer is None
        self.observer = observer or ChainObserver(
            config.network.to_network(),
            request_timeout=config.network.request_timeout,
        )
        self.registry = SubscriberRegistry()
        self.monitor = TransactionMonitor(
            self.ledger,
            self.observer,
            self.registry,
            interval=config.monitor.interval_seconds,
            drop_threshold=config.monitor.drop_threshold_blocks,
        )
        self.ticker = BlockTicker(
            self.observer,
            self.registry,
            interval=config.ticker.interval_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        config_path: Path | None = None,
        observer: ChainObserver | None = None,
    ) -> WalletSyncService:
        db = get_database(resolve_db_path(config, config_path))
        return cls(config=config, db=db, observer=observer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Connect the ledger without starting any background task."""
        if not self.db.is_connected:
            await self.db.connect()

    async def start(self) -> None:
        await self.open()
        if self.config.monitor.enabled:
            self.monitor.start()
        if self.config.ticker.enabled:
            await self.ticker.start()
        logger.info(f"wallet-sync watching {self.config.network.name} ({self.config.network.rpc_url})")

    async def shutdown(self) -> None:
        await self.ticker.stop()
        await self.monitor.stop()
        if self._owns_observer:
            await self.observer.close()
        await self.db.close()

    # ------------------------------------------------------------------
    # Submission path
    # ------------------------------------------------------------------

    async def submit(self, payload: TransactionCreate) -> TransactionRecord:
        """Record a new transaction and announce it as ``newTransaction``.

        Pending submissions without ``submitted_block`` are stamped with the
        current height so the drop threshold counts from submission.

        Raises
        ------
        ChainUnavailableError
            If the height is needed but the node cannot be reached.  Nothing
            is recorded; an unstamped pending record would be measured from
            block 0 and dropped on its first check.
        DuplicateTransactionError
            If the hash is already recorded.
        """
        record = payload.to_record()
        if record.is_pending and record.submitted_block is None:
            try:
                record.submitted_block = await self.observer.get_block_height()
            except ChainUnavailableError as e:
                logger.warning(f"Rejecting {record.tx_hash}: could not read the submission height: {e}")
                raise

        await self.ledger.insert(record)
        await self.registry.broadcast(events.new_transaction(record))
        return record
