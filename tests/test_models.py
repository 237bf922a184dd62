from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from fakes import WALLET, make_record
from wallet_sync.chain.observer import receipt_from_rpc
from wallet_sync.core import events
from wallet_sync.storage.models import Receipt, TransactionCreate, TransactionStatus


def _payload(**overrides):
    body = {
        "walletAddress": WALLET,
        "txHash": "0xabc",
        "from": WALLET,
        "to": "0x2222222222222222222222222222222222222222",
        "value": "0.25",
        "type": "send",
    }
    body.update(overrides)
    return body


def test_create_accepts_camel_case_wire_payload():
    payload = TransactionCreate.model_validate(_payload())
    assert payload.from_address == WALLET
    assert payload.tx_hash == "0xabc"
    assert payload.status is TransactionStatus.PENDING
    assert payload.token_address is None


@pytest.mark.parametrize("value", ["abc", "-1", "NaN", "Infinity"])
def test_create_rejects_bad_amounts(value):
    with pytest.raises(ValidationError):
        TransactionCreate.model_validate(_payload(value=value))


def test_create_rejects_unknown_type():
    with pytest.raises(ValidationError):
        TransactionCreate.model_validate(_payload(type="swap"))


def test_record_wire_form_uses_camel_case_and_from_to():
    wire = make_record("0xBB", gas_used=None).to_wire()
    assert wire["txHash"] == "0xBB"
    assert wire["walletAddress"] == WALLET
    assert wire["from"] == WALLET
    assert "to" in wire
    assert wire["status"] == "pending"
    assert wire["blockNumber"] is None
    assert "tx_hash" not in wire


def test_receipt_must_be_terminal():
    with pytest.raises(ValidationError):
        Receipt(status="pending")


def test_receipt_from_rpc_maps_status_and_gas():
    ok = receipt_from_rpc(
        {"status": 1, "gasUsed": 21000, "effectiveGasPrice": 1000000000, "blockNumber": 555}
    )
    assert ok == Receipt(status="success", gas_used="21000", gas_price="1000000000", block_number=555)

    reverted = receipt_from_rpc({"status": 0, "gasUsed": 50000, "gasPrice": 7, "blockNumber": 9})
    assert reverted.status is TransactionStatus.FAILED
    assert reverted.gas_price == "7"


def test_event_wire_shape():
    event = events.new_block(103)
    data = event.to_dict()
    assert data["type"] == "newBlock"
    assert data["blockNumber"] == 103
    assert isinstance(data["timestamp"], int)

    update = events.transaction_update(make_record("0xBB")).to_dict()
    assert update["type"] == "transactionUpdate"
    assert update["transaction"]["txHash"] == "0xBB"
    assert list(update)[-1] == "timestamp"


def test_timestamps_are_normalised_to_utc():
    naive = make_record("0x01", timestamp=datetime(2024, 5, 1, 10, 0))
    shifted = make_record("0x02", timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))))
    assert naive.timestamp.tzinfo == timezone.utc
    assert shifted.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert shifted.timestamp.utcoffset() == timedelta(0)
