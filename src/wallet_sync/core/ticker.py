"""Block height poller that announces new blocks to live clients."""

from __future__ import annotations

import logging

from wallet_sync.chain.observer import ChainObserver
from wallet_sync.core import events
from wallet_sync.core.periodic import PeriodicTask
from wallet_sync.core.registry import SubscriberRegistry
from wallet_sync.errors import ChainUnavailableError

logger = logging.getLogger("wallet_sync.ticker")

DEFAULT_INTERVAL = 5.0


class BlockTicker:
    """Polls the chain height and emits one ``newBlock`` per observed advance.

    A jump of several blocks between polls is reported once, with the
    latest height.
    """

    def __init__(
        self,
        observer: ChainObserver,
        registry: SubscriberRegistry,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.observer = observer
        self.registry = registry
        self._last_block = 0
        self._timer = PeriodicTask("block-ticker", self.poll_once, interval)

    @property
    def last_block(self) -> int:
        return self._last_block

    @property
    def running(self) -> bool:
        return self._timer.running

    async def start(self) -> None:
        """Take the current height as baseline, then start polling.

        Polling starts even if the baseline lookup fails (baseline 0).
        """
        if self.running:
            logger.info("Block ticker is already running")
            return
        try:
            self._last_block = await self.observer.get_block_height()
            logger.info(f"Initial block number: {self._last_block}")
        except Exception as e:
            self._last_block = 0
            logger.error(f"Failed to fetch initial block number: {e}")
        self._timer.start()
        logger.info(f"Block ticker started (polling every {self._timer.interval}s)")

    async def stop(self) -> None:
        if not self.running:
            return
        await self._timer.stop()
        logger.info("Block ticker stopped")

    async def poll_once(self) -> int | None:
        """Check the height once; return it if it advanced, else ``None``."""
        try:
            current = await self.observer.get_block_height()
        except ChainUnavailableError as e:
            logger.warning(f"Error polling for new blocks: {e}")
            return None

        if current <= self._last_block:
            return None

        logger.info(f"New block detected: {current}")
        self._last_block = current
        await self.registry.broadcast(events.new_block(current))
        return current
