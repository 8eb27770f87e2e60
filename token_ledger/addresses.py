"""
Account Identifiers

Accounts are 20-byte addresses written as 0x-prefixed hex strings.
Identifiers are normalised to lower case so that two spellings of the
same address compare and hash equal.
"""

import re
from typing import Union

from .errors import InvalidAddress


ADDRESS_BYTES = 20

ZERO_ADDRESS = "0x" + "00" * ADDRESS_BYTES

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{%d}$" % (ADDRESS_BYTES * 2))


def normalize_address(value: Union[str, bytes]) -> str:
    """
    Return the canonical form of an account identifier

    Args:
        value: Hex string (with or without 0x prefix) or raw 20 bytes

    Returns:
        Lower-case 0x-prefixed hex string

    Raises:
        InvalidAddress: If the value is not a 20-byte address
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_BYTES:
            raise InvalidAddress(
                f"Address must be {ADDRESS_BYTES} bytes, got {len(value)}",
                {"address": bytes(value).hex()}
            )
        return "0x" + bytes(value).hex()

    if not isinstance(value, str):
        raise InvalidAddress(f"Address must be a string, got {type(value).__name__}")

    candidate = value.strip().lower()
    if not candidate.startswith("0x"):
        candidate = "0x" + candidate

    if not _ADDRESS_RE.match(candidate):
        raise InvalidAddress(f"Malformed address: {value!r}", {"address": value})

    return candidate


def is_zero_address(value: Union[str, bytes]) -> bool:
    """Check if an identifier is the reserved "no account" sentinel"""
    return normalize_address(value) == ZERO_ADDRESS


def short_address(address: str) -> str:
    """Abbreviated form for log messages"""
    return f"{address[:6]}...{address[-4:]}"
