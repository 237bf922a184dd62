import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from fakes import OTHER, WALLET, make_record, open_ledger
from wallet_sync.errors import DuplicateTransactionError
from wallet_sync.storage.models import TransactionStatus


def test_get_by_hash_ignores_case(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0xAbCdEf"))
        found = await ledger.get_by_hash("0xABCDEF")
        missing = await ledger.get_by_hash("0x1234")
        await ledger.db.close()
        return found, missing

    found, missing = asyncio.run(scenario())
    assert found is not None
    assert found.tx_hash == "0xAbCdEf"
    assert found.status is TransactionStatus.PENDING
    assert missing is None


def test_duplicate_hash_in_other_case_is_rejected(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0xaa01"))
        try:
            with pytest.raises(DuplicateTransactionError):
                await ledger.insert(make_record("0xAA01"))
        finally:
            await ledger.db.close()

    asyncio.run(scenario())


def test_list_by_wallet_is_case_insensitive_and_newest_first(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0x01", minutes_ago=30))
        await ledger.insert(make_record("0x02", minutes_ago=5, type="receive"))
        await ledger.insert(make_record("0x03", wallet=OTHER))
        records = await ledger.list_by_wallet(WALLET.lower())
        await ledger.db.close()
        return records

    records = asyncio.run(scenario())
    assert [r.tx_hash for r in records] == ["0x02", "0x01"]


def test_list_pending_skips_terminal_records(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0x01"))
        await ledger.insert(make_record("0x02", status="success", block_number=10))
        await ledger.insert(make_record("0x03", status="failed"))
        pending = await ledger.list_pending()
        await ledger.db.close()
        return pending

    assert [r.tx_hash for r in asyncio.run(scenario())] == ["0x01"]


def test_update_fields_refuses_immutable_fields(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0x01"))
        try:
            with pytest.raises(ValueError):
                await ledger.update_fields("0x01", value="99")
        finally:
            await ledger.db.close()

    asyncio.run(scenario())


def test_terminal_record_is_never_rewritten(db_path):
    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0x01"))
        first = await ledger.update_fields(
            "0x01", status=TransactionStatus.SUCCESS, gas_used="21000", block_number=7
        )
        second = await ledger.update_fields("0x01", status=TransactionStatus.FAILED)
        record = await ledger.get_by_hash("0x01")
        await ledger.db.close()
        return first, second, record

    first, second, record = asyncio.run(scenario())
    assert first is True
    assert second is False
    assert record.status is TransactionStatus.SUCCESS
    assert record.gas_used == "21000"
    assert record.block_number == 7


def test_value_keeps_full_precision(db_path):
    amount = "123456789012345678901234567890.123456789012345678"

    async def scenario():
        ledger = await open_ledger(db_path)
        await ledger.insert(make_record("0x01", value=amount))
        record = await ledger.get_by_hash("0x01")
        await ledger.db.close()
        return record

    assert asyncio.run(scenario()).value == amount


def test_list_by_wallet_orders_by_instant_across_offsets(db_path):
    plus_five = timezone(timedelta(hours=5))

    async def scenario():
        ledger = await open_ledger(db_path)
        # 07:00 UTC, written with a +05:00 offset
        await ledger.insert(make_record("0x0a", timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=plus_five)))
        # 10:00 UTC, no offset given
        await ledger.insert(make_record("0x0b", timestamp=datetime(2024, 5, 1, 10, 0)))
        # 08:30 UTC
        await ledger.insert(make_record("0x0c", timestamp=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)))
        records = await ledger.list_by_wallet(WALLET)
        await ledger.db.close()
        return records

    records = asyncio.run(scenario())
    assert [r.tx_hash for r in records] == ["0x0b", "0x0c", "0x0a"]
    assert records[-1].timestamp == datetime(2024, 5, 1, 7, 0, tzinfo=timezone.utc)
