"""Background reconciliation of pending transactions against on-chain receipts."""

from __future__ import annotations

import logging

from wallet_sync.chain.observer import ChainObserver
from wallet_sync.core import events
from wallet_sync.core.periodic import PeriodicTask
from wallet_sync.core.registry import SubscriberRegistry
from wallet_sync.errors import ChainUnavailableError
from wallet_sync.storage.ledger import LedgerStore
from wallet_sync.storage.models import TransactionRecord, TransactionStatus

logger = logging.getLogger("wallet_sync.monitor")

DEFAULT_INTERVAL = 10.0
DEFAULT_DROP_THRESHOLD = 50


class TransactionMonitor:
    """Moves every ``pending`` record to ``success`` or ``failed``.

    Each cycle lists the pending records and looks up a receipt for each:

    * receipt found -- the record takes the receipt's status together with
      its gas figures and block number;
    * no receipt and the record is older than ``drop_threshold`` blocks --
      the transaction is presumed dropped and marked ``failed``;
    * no receipt otherwise -- left pending for the next cycle.

    Age is measured from the record's ``block_number``, else its
    ``submitted_block``, else block 0.  A lookup the node could not answer
    (:class:`ChainUnavailableError`) skips the record for this cycle only.
    Any other error on one record is logged and the cycle moves on.

    Every status change is re-read from the ledger and broadcast as a
    ``transactionUpdate`` event.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        observer: ChainObserver,
        registry: SubscriberRegistry,
        interval: float = DEFAULT_INTERVAL,
        drop_threshold: int = DEFAULT_DROP_THRESHOLD,
    ) -> None:
        self.ledger = ledger
        self.observer = observer
        self.registry = registry
        self.drop_threshold = drop_threshold
        self._timer = PeriodicTask("transaction-monitor", self.run_cycle, interval)

    @property
    def interval(self) -> float:
        return self._timer.interval

    @property
    def running(self) -> bool:
        return self._timer.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self._timer.start():
            logger.info("Transaction monitor is already running")
            return
        logger.info(f"Transaction monitor started (checking every {self.interval}s)")

    async def stop(self) -> None:
        if not self.running:
            return
        await self._timer.stop()
        logger.info("Transaction monitor stopped")

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def run_cycle(self) -> int:
        """Check every pending record once; return how many changed status."""
        pending = await self.ledger.list_pending()
        if not pending:
            return 0

        logger.info(f"Checking {len(pending)} pending transaction(s)...")
        changed = 0
        for record in pending:
            if await self.check_transaction(record):
                changed += 1
        return changed

    async def check_once(self, tx_hash: str) -> TransactionRecord | None:
        """Reconcile one transaction right away.

        Missing or already-terminal records are left alone.  Returns the
        record as stored after the check, or ``None`` if there is none.
        """
        record = await self.ledger.get_by_hash(tx_hash)
        if record is None or not record.is_pending:
            return record
        if await self.check_transaction(record):
            return await self.ledger.get_by_hash(tx_hash)
        return record

    async def check_transaction(self, record: TransactionRecord) -> bool:
        """Reconcile a single record, never raising; ``True`` if its status changed."""
        try:
            return await self._reconcile(record)
        except ChainUnavailableError as e:
            logger.warning(f"Network error checking transaction {record.tx_hash}, will retry: {e}")
        except Exception:
            logger.exception(f"Error checking transaction {record.tx_hash}")
        return False

    async def _reconcile(self, record: TransactionRecord) -> bool:
        receipt = await self.observer.get_receipt(record.tx_hash)

        if receipt is None:
            current = await self.observer.get_block_height()
            age = current - self._reference_block(record)
            if age <= self.drop_threshold:
                return False
            logger.info(f"Transaction {record.tx_hash} appears to be dropped (age: {age} blocks)")
            return await self._apply(record, status=TransactionStatus.FAILED)

        if receipt.status is TransactionStatus.SUCCESS:
            logger.info(f"Transaction {record.tx_hash} confirmed successfully")
        else:
            logger.info(f"Transaction {record.tx_hash} failed")
        return await self._apply(
            record,
            status=receipt.status,
            gas_used=receipt.gas_used,
            gas_price=receipt.gas_price,
            block_number=receipt.block_number,
        )

    @staticmethod
    def _reference_block(record: TransactionRecord) -> int:
        if record.block_number is not None:
            return record.block_number
        if record.submitted_block is not None:
            return record.submitted_block
        return 0

    async def _apply(self, record: TransactionRecord, **fields: object) -> bool:
        if not await self.ledger.update_fields(record.tx_hash, **fields):
            # Someone else (e.g. a concurrent check_once) got there first.
            logger.debug(f"Transaction {record.tx_hash} is no longer pending; skipped")
            return False

        updated = await self.ledger.get_by_hash(record.tx_hash)
        if updated is not None:
            sent = await self.registry.broadcast(events.transaction_update(updated))
            if sent:
                logger.info(f"Broadcast transaction update for {updated.tx_hash} to {sent} client(s)")
        return True
