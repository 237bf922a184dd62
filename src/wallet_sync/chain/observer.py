"""Web3 chain observer: block height and receipt lookups for one EVM chain."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import ProviderConnectionError, TransactionNotFound
from web3.middleware import ExtraDataToPOAMiddleware

from wallet_sync.chain.network import DEFAULT_NETWORK, Network
from wallet_sync.errors import ChainUnavailableError
from wallet_sync.storage.models import Receipt, TransactionStatus

logger = logging.getLogger("wallet_sync.chain")

# Failures that mean "could not ask the chain", as opposed to an answer.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
    ProviderConnectionError,
)


def receipt_from_rpc(raw: Mapping[str, Any]) -> Receipt:
    """Convert an ``eth_getTransactionReceipt`` result into a :class:`Receipt`.

    Gas figures are kept as decimal strings.  ``effectiveGasPrice`` is
    preferred; pre-London nodes only report ``gasPrice``.
    """
    status = TransactionStatus.SUCCESS if raw.get("status") == 1 else TransactionStatus.FAILED
    gas_used = raw.get("gasUsed")
    gas_price = raw.get("effectiveGasPrice", raw.get("gasPrice"))
    return Receipt(
        status=status,
        gas_used=str(gas_used) if gas_used is not None else None,
        gas_price=str(gas_price) if gas_price is not None else None,
        block_number=raw.get("blockNumber"),
    )


class ChainObserver:
    """Read-only async view of a single chain.

    Every method raises :class:`ChainUnavailableError` when the node cannot
    be reached or times out, so callers can tell a transport problem apart
    from a definitive answer.
    """

    def __init__(
        self,
        network: Network = DEFAULT_NETWORK,
        request_timeout: float = 30.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self.network = network
        self.request_timeout = request_timeout
        self._w3 = w3

    @property
    def w3(self) -> AsyncWeb3:
        """Lazily built ``AsyncWeb3`` instance.

        Injects POA middleware for non-mainnet chains.
        """
        if self._w3 is None:
            provider = AsyncWeb3.AsyncHTTPProvider(
                self.network.rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.request_timeout)},
            )
            w3 = AsyncWeb3(provider)
            if self.network.chain_id != 1:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    async def get_block_height(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except TRANSIENT_ERRORS as exc:
            raise ChainUnavailableError(f"Could not fetch block height: {exc}") from exc

    async def get_receipt(self, tx_hash: str) -> Receipt | None:
        """Return the receipt for *tx_hash*, or ``None`` if not mined yet."""
        try:
            raw = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except TRANSIENT_ERRORS as exc:
            raise ChainUnavailableError(f"Could not fetch receipt for {tx_hash}: {exc}") from exc
        if raw is None:
            return None
        return receipt_from_rpc(raw)

    async def get_native_balance(self, address: str) -> int:
        """Native token balance of *address* in wei."""
        checksum = AsyncWeb3.to_checksum_address(address)
        try:
            return int(await self.w3.eth.get_balance(checksum))
        except TRANSIENT_ERRORS as exc:
            raise ChainUnavailableError(f"Could not fetch balance for {address}: {exc}") from exc

    async def close(self) -> None:
        """Release the provider's HTTP session, if one was opened."""
        if self._w3 is None:
            return
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
