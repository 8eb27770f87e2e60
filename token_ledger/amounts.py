"""
Amount Arithmetic

Token amounts are plain integers in the unsigned 256-bit domain. Every
addition and subtraction is checked; nothing ever wraps around or goes
negative. Display formatting uses Decimal so fractional units are never
rendered through float.
"""

from decimal import Decimal, localcontext

from .errors import ArithmeticOverflow, InvalidAmount


MAX_UINT256 = 2 ** 256 - 1


def require_amount(value) -> int:
    """
    Validate that a value is a usable amount

    Raises:
        InvalidAmount: If the value is not an int in [0, MAX_UINT256]
    """
    # bool is an int subclass but never a meaningful amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"Amount must be an integer, got {type(value).__name__}")
    if value < 0:
        raise InvalidAmount(f"Amount cannot be negative: {value}", {"amount": str(value)})
    if value > MAX_UINT256:
        raise InvalidAmount("Amount exceeds uint256 maximum", {"amount": str(value)})
    return value


def checked_add(a: int, b: int) -> int:
    """Add two amounts, raising instead of wrapping"""
    result = a + b
    if result > MAX_UINT256:
        raise ArithmeticOverflow(
            "Addition exceeds uint256 maximum",
            {"left": str(a), "right": str(b)}
        )
    return result


def checked_sub(a: int, b: int) -> int:
    """Subtract two amounts. Callers check sufficiency first; this guards the invariant."""
    if b > a:
        raise ArithmeticOverflow(
            "Subtraction would go below zero",
            {"left": str(a), "right": str(b)}
        )
    return a - b


def parse_amount(raw: str) -> int:
    """Parse a stored decimal string back into an amount"""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidAmount(f"Stored amount is not an integer: {raw!r}")
    return require_amount(value)


def format_amount(amount: int, decimals: int, symbol: str = "") -> str:
    """
    Render base units as a human-readable quantity

    Examples:
        format_amount(123450, 2, "TKN") -> "TKN 1,234.50"
    """
    with localcontext() as ctx:
        ctx.prec = 100  # uint256 needs 78 significant digits
        value = Decimal(amount).scaleb(-decimals)
        text = f"{value:,.{decimals}f}"
    return f"{symbol} {text}" if symbol else text
