"""Subscriber registry: live client connections and best-effort fan-out."""

from __future__ import annotations

import logging
from typing import Protocol

from wallet_sync.core import events
from wallet_sync.core.events import Event

logger = logging.getLogger("wallet_sync.registry")


class Connection(Protocol):
    """Anything that can push a text frame to one client (e.g. a FastAPI ``WebSocket``)."""

    async def send_text(self, data: str) -> None: ...


class SubscriberRegistry:
    """The set of connected clients.

    One instance is owned by the server and shared with the transaction
    monitor and the block ticker.  Broadcasts iterate over a snapshot of the
    membership, so connections may come and go at any point; a connection
    registered mid-broadcast does not receive that broadcast.
    """

    def __init__(self) -> None:
        self._connections: dict[int, Connection] = {}  # keyed by id(); connections need not be hashable

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return id(connection) in self._connections

    async def register(self, connection: Connection) -> None:
        """Greet *connection* with a ``connected`` event, then add it.

        The greeting is always the first frame a client sees.  A client whose
        greeting fails is never added.
        """
        if not await self._send(connection, events.connected().to_json()):
            return
        self._connections[id(connection)] = connection
        logger.info(f"Client connected ({len(self._connections)} total)")

    def unregister(self, connection: Connection) -> None:
        if self._connections.pop(id(connection), None) is not None:
            logger.info(f"Client disconnected ({len(self._connections)} total)")

    async def broadcast(self, event: Event) -> int:
        """Deliver *event* to every connection; return how many got it.

        A connection whose send raises is dropped; the rest still get the
        message.  Nothing is retried or queued.
        """
        payload = event.to_json()
        delivered = 0
        for connection in list(self._connections.values()):
            if id(connection) not in self._connections:
                continue  # left while an earlier send was awaiting
            if await self._send(connection, payload):
                delivered += 1
        if delivered:
            logger.debug(f"Broadcast {event.type} to {delivered} client(s)")
        return delivered

    async def _send(self, connection: Connection, payload: str) -> bool:
        try:
            await connection.send_text(payload)
        except Exception as e:
            logger.warning(f"Dropping client after failed send: {e}")
            self.unregister(connection)
            return False
        return True
