"""
rewardpayout/payout/balance.py

Pre-flight custodial balance check.

The check is advisory: it is not atomic with submission and the ledger is
mutated concurrently by other actors, so a passing check proves nothing.
When the balance cannot be read the transfer proceeds and the ledger's own
submission rejects an over-draft.
"""

import logging
from typing import Optional, TYPE_CHECKING

from .models import BalanceCheck

if TYPE_CHECKING:
    from ..ledger.base import LedgerClient

logger = logging.getLogger("rewardpayout.payout.balance")


class BalanceGuard:
    """
    Compares a required amount against the payer's current holdings.

    Example:
        guard = BalanceGuard(ledger, payer_address, asset_id="SATORI")
        check = await guard.check_sufficient(150_000_000)
        if check.known and not check.sufficient:
            ...
    """

    def __init__(
        self,
        ledger: "LedgerClient",
        payer_account: str,
        asset_id: Optional[str] = None,
    ):
        self.ledger = ledger
        self.payer_account = payer_account
        self.asset_id = asset_id

    async def get_available(self) -> int:
        """Current payer holdings in minimal units (raises on query failure)."""
        return await self.ledger.get_account_holdings(self.payer_account, self.asset_id)

    async def check_sufficient(self, required: int) -> BalanceCheck:
        """
        Check whether the payer holds at least `required` minimal units.

        Never raises for an unavailable balance.
        """
        try:
            available = await self.get_available()
        except Exception as e:
            logger.warning(
                f"Could not retrieve payer balance, proceeding with transfer attempt: {e}"
            )
            return BalanceCheck(sufficient=True, available=None)

        sufficient = available >= required
        if not sufficient:
            logger.warning(
                f"Payer balance {available} below required {required} "
                f"({self.asset_id or 'native'})"
            )
        return BalanceCheck(sufficient=sufficient, available=available)
