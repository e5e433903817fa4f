"""
Tests for rewardpayout/payout/address.py
"""

import pytest
from unittest.mock import Mock

from rewardpayout.payout.address import AddressValidator, is_base58_address


VALID_ADDRESS = "ERecipient1AddressAAAAAAAAAAAAAAAAA"


class TestIsBase58Address:
    """Tests for the default predicate."""

    def test_valid(self):
        assert is_base58_address(VALID_ADDRESS)

    @pytest.mark.parametrize("address", [
        "",
        "short",
        "E" + "1" * 30,              # 31 chars
        "E" + "1" * 44,              # 45 chars
        "EInvalid0AddressOOOOOOOOOOOOOOOOOO",  # 0, I and O are not base-58
        "ERecipient1Address AAAAAAAAAAAAAAAA",
    ])
    def test_invalid(self, address):
        assert not is_base58_address(address)

    def test_length_bounds(self):
        assert is_base58_address("E" + "1" * 31)
        assert is_base58_address("E" + "1" * 43)


class TestAddressValidator:
    """Tests for AddressValidator."""

    def test_default_predicate(self):
        validator = AddressValidator()
        assert validator.is_valid(VALID_ADDRESS)
        assert not validator.is_valid("bad")

    @pytest.mark.parametrize("address", [None, 123, b"bytes", ""])
    def test_non_strings_are_invalid(self, address):
        predicate = Mock(return_value=True)
        validator = AddressValidator(predicate)
        assert not validator.is_valid(address)
        predicate.assert_not_called()

    def test_custom_predicate(self):
        predicate = Mock(return_value=False)
        validator = AddressValidator(predicate)
        assert not validator(VALID_ADDRESS)
        predicate.assert_called_once_with(VALID_ADDRESS)

    def test_raising_predicate_is_invalid(self):
        validator = AddressValidator(Mock(side_effect=ValueError("bad checksum")))
        assert validator.is_valid(VALID_ADDRESS) is False
