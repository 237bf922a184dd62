"""Pydantic models mapping to the wallet-sync ledger tables."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class TransactionType(str, Enum):
    SEND = "send"
    RECEIVE = "receive"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _new_id() -> str:
    """Generate a short hex ID (12 characters)."""
    return uuid.uuid4().hex[:12]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_decimal_string(value: Optional[str]) -> Optional[str]:
    """Reject anything that isn't a finite, non-negative decimal string.

    The string itself is kept as-is so no precision is lost.
    """
    if value is None:
        return None
    value = str(value).strip()
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a decimal number") from None
    if not parsed.is_finite() or parsed < 0:
        raise ValueError(f"'{value}' must be a finite, non-negative amount")
    return value


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------

class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python and in the database."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class TransactionCreate(_WireModel):
    """Payload accepted by the submission path.

    Gas and block fields are optional so already-confirmed incoming
    transfers can be recorded as-is.
    """

    wallet_address: str
    tx_hash: str
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    value: str
    timestamp: datetime = Field(default_factory=_utcnow)
    status: TransactionStatus = TransactionStatus.PENDING
    type: TransactionType
    token_address: Optional[str] = None  # None == native asset
    token_symbol: Optional[str] = None
    token_decimals: Optional[int] = None
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    block_number: Optional[int] = None
    submitted_block: Optional[int] = None

    @field_validator("tx_hash", "wallet_address", "from_address", "to_address")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        # Stored as ISO text and sorted as text, so every value shares one offset.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("value", "gas_used", "gas_price", mode="before")
    @classmethod
    def _decimal_string(cls, v):
        return _check_decimal_string(v)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(**self.model_dump())


class TransactionRecord(TransactionCreate):
    """Maps to the ``transactions`` table.

    ``status``, ``gas_used``, ``gas_price`` and ``block_number`` are owned by
    the reconciliation loop; everything else is fixed at creation.
    """

    id: str = Field(default_factory=_new_id)

    @property
    def is_pending(self) -> bool:
        return self.status is TransactionStatus.PENDING


class Receipt(BaseModel):
    """Chain-confirmed outcome of a transaction."""

    status: TransactionStatus
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    block_number: Optional[int] = None

    @field_validator("status")
    @classmethod
    def _terminal_only(cls, v: TransactionStatus) -> TransactionStatus:
        if not v.is_terminal:
            raise ValueError("a receipt is always success or failed")
        return v
