"""Events pushed to live clients.

Every event serializes to ``{"type": ..., <fields>, "timestamp": <epoch ms>}``.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

from wallet_sync.storage.models import TransactionRecord

CONNECTED = "connected"
NEW_BLOCK = "newBlock"
TRANSACTION_UPDATE = "transactionUpdate"
NEW_TRANSACTION = "newTransaction"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Event:
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.data, "timestamp": self.timestamp}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def connected() -> Event:
    return Event(CONNECTED)


def new_block(block_number: int) -> Event:
    return Event(NEW_BLOCK, {"blockNumber": block_number})


def transaction_update(record: TransactionRecord) -> Event:
    return Event(TRANSACTION_UPDATE, {"transaction": record.to_wire()})


def new_transaction(record: TransactionRecord) -> Event:
    return Event(NEW_TRANSACTION, {"transaction": record.to_wire()})
