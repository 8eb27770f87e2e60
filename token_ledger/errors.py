"""
Ledger Error Taxonomy

Every rejected state transition raises one of these. All of them are
synchronous caller-input errors: nothing is retried and no state is
changed when one is raised.
"""

from typing import Any, Dict, Optional


class LedgerError(ValueError):
    """Base class for rejected ledger operations"""

    code = "ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and logs"""
        return {
            "error": self.code,
            "detail": self.message,
            **({"context": self.details} if self.details else {})
        }


class InvalidRecipient(LedgerError):
    """Destination identifier is the zero sentinel"""
    code = "invalid_recipient"


class InvalidSpender(LedgerError):
    """Spender identifier is the zero sentinel"""
    code = "invalid_spender"


class InsufficientBalance(LedgerError):
    """Requested amount exceeds the source account's balance"""
    code = "insufficient_balance"


class InsufficientAllowance(LedgerError):
    """Requested amount exceeds the caller's remaining allowance"""
    code = "insufficient_allowance"


class ArithmeticOverflow(LedgerError):
    """An addition would exceed the representable maximum"""
    code = "arithmetic_overflow"


class InvalidAmount(LedgerError):
    """Amount is not an integer in the unsigned 256-bit domain"""
    code = "invalid_amount"


class InvalidAddress(LedgerError):
    """Account identifier is malformed"""
    code = "invalid_address"


class InvalidMetadata(LedgerError):
    """Token name, symbol or decimals are unusable"""
    code = "invalid_metadata"


class AlreadyInitialized(LedgerError):
    """Supply has already been created for this store"""
    code = "already_initialized"


class NotInitialized(LedgerError):
    """Ledger attached to a store whose supply was never created"""
    code = "not_initialized"
