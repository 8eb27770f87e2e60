"""
Tests for amount arithmetic and account identifiers
"""

import pytest

from token_ledger.addresses import (
    ZERO_ADDRESS, is_zero_address, normalize_address, short_address
)
from token_ledger.amounts import (
    MAX_UINT256, checked_add, checked_sub, format_amount, parse_amount, require_amount
)
from token_ledger.errors import ArithmeticOverflow, InvalidAddress, InvalidAmount


class TestRequireAmount:
    """Test amount domain validation"""

    @pytest.mark.parametrize("value", [0, 1, 10 ** 18, MAX_UINT256])
    def test_valid_amounts(self, value):
        assert require_amount(value) == value

    @pytest.mark.parametrize("value", [-1, MAX_UINT256 + 1, 1.0, "1", None, False])
    def test_invalid_amounts(self, value):
        with pytest.raises(InvalidAmount):
            require_amount(value)


class TestCheckedArithmetic:
    """Test overflow-checked add and sub"""

    def test_add(self):
        assert checked_add(2, 3) == 5
        assert checked_add(MAX_UINT256 - 1, 1) == MAX_UINT256

    def test_add_overflow(self):
        """Test addition never wraps"""
        with pytest.raises(ArithmeticOverflow) as exc_info:
            checked_add(MAX_UINT256, 1)
        assert exc_info.value.code == "arithmetic_overflow"

    def test_sub(self):
        assert checked_sub(5, 5) == 0

    def test_sub_underflow(self):
        """Test subtraction never goes negative"""
        with pytest.raises(ArithmeticOverflow):
            checked_sub(1, 2)


class TestParseAndFormat:
    """Test stored-string parsing and display formatting"""

    def test_parse_amount(self):
        assert parse_amount("1000") == 1000
        assert parse_amount(str(MAX_UINT256)) == MAX_UINT256

    def test_parse_garbage(self):
        with pytest.raises(InvalidAmount):
            parse_amount("12.5")

    def test_format_with_decimals(self):
        assert format_amount(123450, 2, "TKN") == "TKN 1,234.50"
        assert format_amount(5, 3) == "0.005"

    def test_format_without_decimals(self):
        assert format_amount(1000000, 0) == "1,000,000"

    def test_format_max_amount_is_exact(self):
        """Test large amounts are not rounded by the decimal context"""
        text = format_amount(MAX_UINT256, 0)
        assert text.replace(",", "") == str(MAX_UINT256)


class TestAddresses:
    """Test account identifier handling"""

    def test_normalize_lowercases_and_prefixes(self):
        raw = "AB" * 20
        assert normalize_address(raw) == "0x" + "ab" * 20
        assert normalize_address("0x" + raw) == "0x" + "ab" * 20

    def test_normalize_bytes(self):
        assert normalize_address(b"\x01" * 20) == "0x" + "01" * 20

    @pytest.mark.parametrize("value", ["", "0x", "0x1234", "0x" + "zz" * 20, "0x" + "00" * 21, b"\x00" * 19, 42])
    def test_malformed_addresses(self, value):
        with pytest.raises(InvalidAddress):
            normalize_address(value)

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address("00" * 20)
        assert is_zero_address(b"\x00" * 20)
        assert not is_zero_address("0x" + "00" * 19 + "01")

    def test_short_address(self):
        assert short_address("0x" + "ab" * 20) == "0xabab...abab"
