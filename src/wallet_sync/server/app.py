"""FastAPI server for wallet-sync: REST contracts plus the ``/ws`` event stream."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from web3 import AsyncWeb3

from wallet_sync.chain.observer import ChainObserver
from wallet_sync.config import AppConfig
from wallet_sync.core.events import now_ms
from wallet_sync.core.service import WalletSyncService
from wallet_sync.errors import (
    ChainUnavailableError,
    DuplicateTransactionError,
    RecordNotFoundError,
)
from wallet_sync.storage.models import TransactionCreate, TransactionType

logger = logging.getLogger("wallet_sync.server")


def _error(status_code: int, message: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    config: AppConfig | None = None,
    config_path: Path | None = None,
    observer: ChainObserver | None = None,
) -> FastAPI:
    """Build the app; the service starts and stops with the app's lifespan."""
    config = config or AppConfig()
    service = WalletSyncService.from_config(config, config_path, observer=observer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(title="wallet-sync", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return _error(400, jsonable_errors(exc))

    @app.exception_handler(RecordNotFoundError)
    async def _not_found(request: Request, exc: RecordNotFoundError):
        return _error(404, str(exc))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @app.get("/api/transactions/{wallet_address}")
    async def api_wallet_transactions(wallet_address: str):
        records = await service.ledger.list_by_wallet(wallet_address)
        return {
            "sent": [r.to_wire() for r in records if r.type is TransactionType.SEND],
            "received": [r.to_wire() for r in records if r.type is TransactionType.RECEIVE],
        }

    @app.get("/api/transaction/{tx_hash}")
    async def api_transaction(tx_hash: str):
        record = await service.ledger.get_by_hash(tx_hash)
        if record is None:
            raise RecordNotFoundError(tx_hash)
        return record.to_wire()

    @app.post("/api/transactions")
    async def api_create_transaction(body: TransactionCreate):
        try:
            record = await service.submit(body)
        except DuplicateTransactionError as e:
            return _error(409, str(e))
        except ChainUnavailableError as e:
            return _error(502, str(e))
        return record.to_wire()

    @app.post("/api/transaction/{tx_hash}/check")
    async def api_check_transaction(tx_hash: str):
        record = await service.monitor.check_once(tx_hash)
        if record is None:
            raise RecordNotFoundError(tx_hash)
        return record.to_wire()

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    @app.get("/api/balance/{address}")
    async def api_balance(address: str):
        try:
            balance = await service.observer.get_native_balance(address)
        except ValueError as e:
            return _error(400, str(e))
        except ChainUnavailableError as e:
            return _error(502, str(e))
        return {
            "balance": str(balance),
            "formatted": str(AsyncWeb3.from_wei(balance, "ether")),
        }

    @app.get("/api/health")
    async def api_health():
        return {
            "status": "ok",
            "timestamp": now_ms(),
            "wsConnections": len(service.registry),
            "lastBlock": service.ticker.last_block,
        }

    # ------------------------------------------------------------------
    # WebSocket
    # ------------------------------------------------------------------

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        await service.registry.register(ws)
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                data = message.get("text")
                if data is None:
                    logger.warning("Ignoring non-text WebSocket frame")
                    continue
                # Clients have nothing to ask over this channel yet; log and carry on.
                try:
                    logger.debug(f"Received WebSocket message: {json.loads(data)}")
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse WebSocket message: {e}")
        except WebSocketDisconnect:
            pass
        finally:
            service.registry.unregister(ws)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors reduced to location and message."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# ------------------------------------------------------------------
# Runner
# ------------------------------------------------------------------


def run_server(
    config: AppConfig,
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
    log_level: str | None = None,
) -> None:
    app = create_app(config, config_path)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=(log_level or config.logging.level).lower(),
    )
