"""
Ledger Record Log

Append-only, hash-chained log of Transfer and Approval records for
external indexers. Each record carries a sequence number and a SHA-256
hash over its content plus the previous record's hash, so any edit to
a stored record breaks the chain.

Records are written through the same storage as balances, so a record
appended inside an atomic block disappears with it on rollback.
"""

import hashlib
import json
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord


class RecordType(Enum):
    """Kinds of ledger records"""
    TRANSFER = "transfer"
    APPROVAL = "approval"


@dataclass
class LedgerRecord(StorageRecord):
    """
    Immutable Transfer/Approval record

    For TRANSFER, source/target are (from, to). For APPROVAL they are
    (owner, spender) and amount is the allowance after the call.
    """
    sequence: int
    record_type: RecordType
    source: str
    target: str
    amount: int
    previous_hash: str
    current_hash: str
    caller: Optional[str] = None

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this record
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'record_type': self.record_type.value,
            'source': self.source,
            'target': self.target,
            'amount': str(self.amount),
            'caller': self.caller,
            'previous_hash': self.previous_hash
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['record_type'] = self.record_type.value
        result['amount'] = str(self.amount)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerRecord':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            sequence=int(data['sequence']),
            record_type=RecordType(data['record_type']),
            source=data['source'],
            target=data['target'],
            amount=int(data['amount']),
            previous_hash=data['previous_hash'],
            current_hash=data['current_hash'],
            caller=data.get('caller')
        )


class RecordLog:
    """Hash-chained, append-only record log"""

    HEAD_ID = "head"

    def __init__(self, storage: StorageInterface, table_name: str = "ledger_records"):
        self.storage = storage
        self.table_name = table_name
        self.head_table = f"{table_name}_head"

    def _load_head(self) -> Dict[str, Any]:
        """Read the chain head from storage so a rolled-back append is never reused"""
        head = self.storage.load(self.head_table, self.HEAD_ID)
        return head or {'sequence': 0, 'hash': ""}

    def append(
        self,
        record_type: RecordType,
        source: str,
        target: str,
        amount: int,
        caller: Optional[str] = None
    ) -> LedgerRecord:
        """
        Append a record to the chain

        Args:
            record_type: TRANSFER or APPROVAL
            source: Sending account (transfer) or owner (approval)
            target: Receiving account (transfer) or spender (approval)
            amount: Amount moved, or the resulting allowance
            caller: Account that invoked the operation

        Returns:
            The stored LedgerRecord
        """
        with self.storage.atomic():
            head = self._load_head()
            now = datetime.now(timezone.utc)

            record = LedgerRecord(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                sequence=head['sequence'] + 1,
                record_type=record_type,
                source=source,
                target=target,
                amount=amount,
                caller=caller,
                previous_hash=head['hash'],
                current_hash=""  # Will be calculated below
            )
            record.current_hash = record.calculate_hash()

            self.storage.save(self.table_name, record.id, record.to_dict())
            self.storage.save(self.head_table, self.HEAD_ID, {
                'sequence': record.sequence,
                'hash': record.current_hash
            })

        return record

    def get_records(
        self,
        record_type: Optional[RecordType] = None,
        account: Optional[str] = None,
        since_sequence: int = 0,
        limit: Optional[int] = None
    ) -> List[LedgerRecord]:
        """
        Get records in sequence order

        Args:
            record_type: Optional type filter
            account: Only records where this account is source or target
            since_sequence: Only records with a higher sequence number
            limit: Maximum number of records to return (oldest first)
        """
        records = [LedgerRecord.from_dict(data) for data in self.storage.load_all(self.table_name)]
        records.sort(key=lambda r: r.sequence)

        if record_type:
            records = [r for r in records if r.record_type == record_type]
        if account:
            records = [r for r in records if account in (r.source, r.target)]
        if since_sequence > 0:
            records = [r for r in records if r.sequence > since_sequence]
        if limit is not None:
            records = records[:max(limit, 0)]

        return records

    def count_records(self) -> int:
        """Get total number of records"""
        return self.storage.count(self.table_name)

    def get_latest_hash(self) -> str:
        """Get the hash of the most recent record ("" for an empty log)"""
        return self._load_head()['hash']

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire record chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_records': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        records = self.get_records()
        result['total_records'] = len(records)

        previous_hash = ""
        for position, record in enumerate(records):
            if not record.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'record_id': record.id,
                    'sequence': record.sequence,
                    'expected_hash': record.calculate_hash(),
                    'actual_hash': record.current_hash
                })

            if record.previous_hash != previous_hash or record.sequence != position + 1:
                result['valid'] = False
                result['chain_breaks'].append({
                    'record_id': record.id,
                    'sequence': record.sequence,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': record.previous_hash
                })
            previous_hash = record.current_hash

        if records and self.get_latest_hash() != records[-1].current_hash:
            result['valid'] = False
            result['chain_breaks'].append({
                'record_id': records[-1].id,
                'sequence': records[-1].sequence,
                'expected_previous_hash': records[-1].current_hash,
                'actual_previous_hash': self.get_latest_hash()
            })

        return result
