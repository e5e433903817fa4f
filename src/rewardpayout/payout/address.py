"""
rewardpayout/payout/address.py

Syntactic validation of recipient account identifiers.
"""

import logging
import re
from typing import Any, Callable, Optional

logger = logging.getLogger("rewardpayout.payout.address")

# Base-58 alphabet (no 0, O, I, l), 32-44 characters
BASE58_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_base58_address(address: str) -> bool:
    """Default predicate: base-58 alphabet, 32 to 44 characters."""
    return bool(BASE58_ADDRESS_PATTERN.match(address))


class AddressValidator:
    """
    Pure predicate over account-identifier strings.

    The predicate comes from the ledger client (it knows its own address
    format); the validator only guarantees it is never asked about
    non-strings and never raises.

    Example:
        validator = AddressValidator(ledger.validate_address)
        validator.is_valid("EXaMpLeAddr...")
    """

    def __init__(self, predicate: Optional[Callable[[str], bool]] = None):
        self._predicate = predicate or is_base58_address

    def is_valid(self, address: Any) -> bool:
        """Return True if `address` is a syntactically valid account identifier."""
        if not isinstance(address, str) or not address:
            return False
        try:
            return bool(self._predicate(address))
        except Exception as e:
            logger.debug(f"Address predicate rejected {address!r}: {e}")
            return False

    __call__ = is_valid
