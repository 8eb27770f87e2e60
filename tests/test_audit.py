"""
Test suite for the ledger record log

Tests hash chaining, tamper detection, ordering and rollback behaviour of
Transfer/Approval records.
"""

import pytest
from datetime import datetime, timezone

from token_ledger.audit import LedgerRecord, RecordLog, RecordType
from token_ledger.storage import InMemoryStorage


OWNER = "0x" + "0a" * 20
SPENDER = "0x" + "0b" * 20


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def record_log(storage):
    return RecordLog(storage)


class TestLedgerRecord:
    """Test LedgerRecord functionality"""

    def _record(self, **overrides):
        now = datetime.now(timezone.utc)
        fields = dict(
            id="REC001",
            created_at=now,
            updated_at=now,
            sequence=1,
            record_type=RecordType.TRANSFER,
            source=OWNER,
            target=SPENDER,
            amount=100,
            previous_hash="",
            current_hash="",
            caller=OWNER
        )
        fields.update(overrides)
        return LedgerRecord(**fields)

    def test_hash_is_deterministic(self):
        """Test identical records hash identically"""
        record = self._record()
        assert record.calculate_hash() == record.calculate_hash()
        assert len(record.calculate_hash()) == 64

    def test_hash_covers_amount(self):
        """Test changing the amount changes the hash"""
        assert self._record(amount=100).calculate_hash() != self._record(amount=101).calculate_hash()

    def test_serialization_round_trip(self):
        """Test dict conversion keeps large amounts exact"""
        record = self._record(amount=2 ** 255)
        record.current_hash = record.calculate_hash()

        data = record.to_dict()
        assert data['amount'] == str(2 ** 255)
        assert data['record_type'] == "transfer"

        restored = LedgerRecord.from_dict(data)
        assert restored.amount == 2 ** 255
        assert restored.verify_hash()


class TestRecordLog:
    """Test the append-only chain"""

    def test_append_chains_hashes(self, record_log):
        """Test each record points at its predecessor"""
        first = record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 10, caller=OWNER)
        second = record_log.append(RecordType.APPROVAL, OWNER, SPENDER, 20, caller=OWNER)

        assert first.sequence == 1
        assert first.previous_hash == ""
        assert second.sequence == 2
        assert second.previous_hash == first.current_hash
        assert record_log.get_latest_hash() == second.current_hash
        assert record_log.count_records() == 2

    def test_empty_log_is_valid(self, record_log):
        result = record_log.verify_integrity()
        assert result['valid']
        assert result['total_records'] == 0
        assert record_log.get_latest_hash() == ""

    def test_integrity_of_untouched_chain(self, record_log):
        for amount in range(5):
            record_log.append(RecordType.TRANSFER, OWNER, SPENDER, amount)

        result = record_log.verify_integrity()
        assert result['valid']
        assert result['total_records'] == 5

    def test_tampered_amount_detected(self, record_log, storage):
        """Test editing a stored record is caught"""
        record = record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 10)
        record_log.append(RecordType.TRANSFER, SPENDER, OWNER, 5)

        data = storage.load(record_log.table_name, record.id)
        data['amount'] = "1000000"
        storage.save(record_log.table_name, record.id, data)

        result = record_log.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'][0]['record_id'] == record.id

    def test_deleted_record_detected(self, record_log, storage):
        """Test removing a record breaks the chain"""
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 1)
        middle = record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 2)
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 3)

        storage.delete(record_log.table_name, middle.id)

        result = record_log.verify_integrity()
        assert not result['valid']
        assert result['chain_breaks']

    def test_append_rolled_back_with_outer_block(self, record_log, storage):
        """Test a record appended in a failed transaction leaves no gap"""
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 1)

        with pytest.raises(RuntimeError):
            with storage.atomic():
                record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 2)
                raise RuntimeError("abort")

        after = record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 3)
        assert after.sequence == 2
        assert record_log.verify_integrity()['valid']

    def test_filters(self, record_log):
        """Test type, account, sequence and limit filters"""
        other = "0x" + "0c" * 20
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 1)
        record_log.append(RecordType.APPROVAL, OWNER, other, 2)
        record_log.append(RecordType.TRANSFER, SPENDER, other, 3)

        assert [r.amount for r in record_log.get_records(record_type=RecordType.TRANSFER)] == [1, 3]
        assert [r.amount for r in record_log.get_records(account=other)] == [2, 3]
        assert [r.amount for r in record_log.get_records(since_sequence=1)] == [2, 3]
        assert [r.amount for r in record_log.get_records(limit=2)] == [1, 2]

    def test_zero_limit_returns_nothing(self, record_log):
        """Test limit=0 means no records rather than no limit"""
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 1)
        record_log.append(RecordType.TRANSFER, OWNER, SPENDER, 2)

        assert record_log.get_records(limit=0) == []
        assert len(record_log.get_records(limit=None)) == 2
