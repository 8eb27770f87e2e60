"""
Token Ledger Engine

Holds per-account balances and per-owner-per-spender allowances for a
single fixed-supply token. Every mutating operation runs under one lock
and inside one storage transaction: it either fully commits (state,
record log entry) or fails with a LedgerError and leaves nothing behind.

Invariant: the sum of all balances equals the total supply fixed at
initialization. There is no mint or burn path.
"""

from typing import Dict, Optional
import threading

from .addresses import ZERO_ADDRESS, normalize_address, short_address
from .amounts import checked_add, checked_sub, format_amount, parse_amount, require_amount
from .audit import LedgerRecord, RecordLog, RecordType
from .errors import (
    InsufficientAllowance, InsufficientBalance, InvalidRecipient,
    InvalidSpender, LedgerError, NotInitialized
)
from .events import EventDispatcher, create_approval_event, create_transfer_event
from .logging_config import get_logger, log_action
from .storage import StorageInterface


BALANCES_TABLE = "balances"
ALLOWANCES_TABLE = "allowances"
META_TABLE = "token_meta"
META_ID = "token"


def allowance_key(owner: str, spender: str) -> str:
    """Storage key for the (owner, spender) allowance entry"""
    return f"{owner}:{spender}"


class TokenLedger:
    """
    Fungible token ledger

    Constructed over a storage backend that the supply initializer has
    already populated. Callers identify themselves explicitly on every
    mutating call.
    """

    def __init__(
        self,
        storage: StorageInterface,
        record_log: Optional[RecordLog] = None,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        self.storage = storage
        self.record_log = record_log or RecordLog(storage)
        self._event_dispatcher = event_dispatcher
        self._lock = threading.RLock()
        self.logger = get_logger("token_ledger.ledger")

        meta = storage.load(META_TABLE, META_ID)
        if not meta:
            raise NotInitialized("Token supply has not been initialized for this storage")

        self._name = meta['name']
        self._symbol = meta['symbol']
        self._decimals = int(meta['decimals'])
        self._total_supply = parse_amount(meta['total_supply'])

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def name(self) -> str:
        return self._name

    def symbol(self) -> str:
        return self._symbol

    def decimals(self) -> int:
        return self._decimals

    def total_supply(self) -> int:
        return self._total_supply

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        """Balance of an account; 0 for accounts never credited"""
        account = normalize_address(account)
        with self._lock:
            return self._balance(account)

    def allowance(self, owner: str, spender: str) -> int:
        """Remaining amount spender may move from owner; 0 if never approved"""
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        with self._lock:
            return self._allowance(owner, spender)

    def holders(self) -> Dict[str, int]:
        """Snapshot of every account with a non-zero balance"""
        with self._lock:
            rows = self.storage.load_all(BALANCES_TABLE)
        balances = {row['account']: parse_amount(row['amount']) for row in rows}
        return {account: amount for account, amount in balances.items() if amount > 0}

    def verify_conservation(self) -> bool:
        """Check that balances still sum to the total supply"""
        return sum(self.holders().values()) == self._total_supply

    def format_amount(self, amount: int) -> str:
        """Render base units using the token's decimals and symbol"""
        return format_amount(require_amount(amount), self._decimals, self._symbol)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        """
        Move amount from caller's balance to another account

        Raises:
            InvalidRecipient: If to is the zero address
            InsufficientBalance: If caller holds less than amount
        """
        caller = normalize_address(caller)
        to = normalize_address(to)
        amount = require_amount(amount)

        with self._lock:
            try:
                with self.storage.atomic():
                    if to == ZERO_ADDRESS:
                        raise InvalidRecipient("Cannot transfer to the zero address")
                    self._move(caller, to, amount)
                    record = self.record_log.append(RecordType.TRANSFER, caller, to, amount, caller=caller)
            except LedgerError as e:
                self._log_rejection("transfer", caller, e, {"to": to, "amount": str(amount)})
                raise

            self._log_success("transfer", caller, record)
            self._publish(create_transfer_event(caller, to, amount, record.sequence))
        return True

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        """
        Set the allowance of spender over caller's balance

        The new value replaces any previous one. No balance check is made.

        Raises:
            InvalidSpender: If spender is the zero address
        """
        caller = normalize_address(caller)
        spender = normalize_address(spender)
        amount = require_amount(amount)

        with self._lock:
            try:
                with self.storage.atomic():
                    if spender == ZERO_ADDRESS:
                        raise InvalidSpender("Cannot approve the zero address")
                    record = self._write_allowance(caller, spender, amount)
            except LedgerError as e:
                self._log_rejection("approve", caller, e, {"spender": spender, "amount": str(amount)})
                raise

            self._log_success("approve", caller, record)
            self._publish(create_approval_event(caller, spender, amount, record.sequence))
        return True

    def transfer_from(self, caller: str, sender: str, to: str, amount: int) -> bool:
        """
        Move amount from sender to another account using caller's allowance

        Allowance is checked before balance, so a short allowance is reported
        even when the balance is short too.

        Raises:
            InvalidRecipient: If to is the zero address
            InsufficientAllowance: If allowance(sender, caller) < amount
            InsufficientBalance: If sender holds less than amount
        """
        caller = normalize_address(caller)
        sender = normalize_address(sender)
        to = normalize_address(to)
        amount = require_amount(amount)

        with self._lock:
            try:
                with self.storage.atomic():
                    if to == ZERO_ADDRESS:
                        raise InvalidRecipient("Cannot transfer to the zero address")

                    current = self._allowance(sender, caller)
                    if current < amount:
                        raise InsufficientAllowance(
                            f"Allowance of {short_address(caller)} over {short_address(sender)} is {current}, "
                            f"needs {amount}",
                            {"owner": sender, "spender": caller, "allowance": str(current), "amount": str(amount)}
                        )

                    self._move(sender, to, amount)
                    self._set_allowance(sender, caller, checked_sub(current, amount))
                    record = self.record_log.append(RecordType.TRANSFER, sender, to, amount, caller=caller)
            except LedgerError as e:
                self._log_rejection("transfer_from", caller, e,
                                    {"from": sender, "to": to, "amount": str(amount)})
                raise

            self._log_success("transfer_from", caller, record)
            self._publish(create_transfer_event(sender, to, amount, record.sequence))
        return True

    def increase_allowance(self, caller: str, spender: str, added: int) -> bool:
        """
        Raise spender's allowance by added

        Raises:
            InvalidSpender: If spender is the zero address
            ArithmeticOverflow: If the new allowance exceeds uint256
        """
        caller = normalize_address(caller)
        spender = normalize_address(spender)
        added = require_amount(added)

        with self._lock:
            try:
                with self.storage.atomic():
                    if spender == ZERO_ADDRESS:
                        raise InvalidSpender("Cannot approve the zero address")
                    new_amount = checked_add(self._allowance(caller, spender), added)
                    record = self._write_allowance(caller, spender, new_amount)
            except LedgerError as e:
                self._log_rejection("increase_allowance", caller, e, {"spender": spender, "added": str(added)})
                raise

            self._log_success("increase_allowance", caller, record)
            self._publish(create_approval_event(caller, spender, new_amount, record.sequence))
        return True

    def decrease_allowance(self, caller: str, spender: str, subtracted: int) -> bool:
        """
        Lower spender's allowance by subtracted

        Raises:
            InvalidSpender: If spender is the zero address
            InsufficientAllowance: If subtracted exceeds the current allowance
        """
        caller = normalize_address(caller)
        spender = normalize_address(spender)
        subtracted = require_amount(subtracted)

        with self._lock:
            try:
                with self.storage.atomic():
                    if spender == ZERO_ADDRESS:
                        raise InvalidSpender("Cannot approve the zero address")
                    current = self._allowance(caller, spender)
                    if current < subtracted:
                        raise InsufficientAllowance(
                            f"Cannot decrease allowance of {current} by {subtracted}",
                            {"owner": caller, "spender": spender,
                             "allowance": str(current), "amount": str(subtracted)}
                        )
                    new_amount = current - subtracted
                    record = self._write_allowance(caller, spender, new_amount)
            except LedgerError as e:
                self._log_rejection("decrease_allowance", caller, e,
                                    {"spender": spender, "subtracted": str(subtracted)})
                raise

            self._log_success("decrease_allowance", caller, record)
            self._publish(create_approval_event(caller, spender, new_amount, record.sequence))
        return True

    # ------------------------------------------------------------------
    # Internals (callers hold self._lock and an open transaction)
    # ------------------------------------------------------------------

    def _balance(self, account: str) -> int:
        row = self.storage.load(BALANCES_TABLE, account)
        return parse_amount(row['amount']) if row else 0

    def _set_balance(self, account: str, amount: int) -> None:
        self.storage.save(BALANCES_TABLE, account, {"account": account, "amount": str(amount)})

    def _allowance(self, owner: str, spender: str) -> int:
        row = self.storage.load(ALLOWANCES_TABLE, allowance_key(owner, spender))
        return parse_amount(row['amount']) if row else 0

    def _set_allowance(self, owner: str, spender: str, amount: int) -> None:
        self.storage.save(ALLOWANCES_TABLE, allowance_key(owner, spender), {
            "owner": owner,
            "spender": spender,
            "amount": str(amount)
        })

    def _write_allowance(self, owner: str, spender: str, amount: int) -> LedgerRecord:
        self._set_allowance(owner, spender, amount)
        return self.record_log.append(RecordType.APPROVAL, owner, spender, amount, caller=owner)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        """Debit sender and credit recipient; all checks happen before any write"""
        sender_balance = self._balance(sender)
        if sender_balance < amount:
            raise InsufficientBalance(
                f"Balance of {short_address(sender)} is {sender_balance}, needs {amount}",
                {"account": sender, "balance": str(sender_balance), "amount": str(amount)}
            )

        if sender == recipient:
            return

        new_sender = checked_sub(sender_balance, amount)
        new_recipient = checked_add(self._balance(recipient), amount)

        self._set_balance(sender, new_sender)
        self._set_balance(recipient, new_recipient)

    def _publish(self, event) -> None:
        """Deliver a committed event; callers still hold self._lock so delivery follows sequence order"""
        if self._event_dispatcher:
            self._event_dispatcher.publish(event)

    def _log_success(self, action: str, caller: str, record: LedgerRecord) -> None:
        log_action(
            self.logger, "info", f"{action} committed",
            user_id=caller, action=action, resource=f"record:{record.sequence}",
            extra={
                "source": record.source,
                "target": record.target,
                "amount": str(record.amount)
            }
        )

    def _log_rejection(self, action: str, caller: str, error: LedgerError, extra: Dict) -> None:
        log_action(
            self.logger, "warning", f"{action} rejected: {error.code}",
            user_id=caller, action=action,
            extra={"error": error.code, "detail": error.message, **extra}
        )
