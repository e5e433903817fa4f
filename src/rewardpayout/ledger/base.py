"""
rewardpayout/ledger/base.py

Ledger-agnostic collaborator interface for the payout engine.

Architecture:
    LedgerClient (abstract)
    └── EvrmoreLedger (evrmored JSON-RPC)

The payout engine only ever talks to a LedgerClient instance that was
constructed and handed to it; there is no module-level connection.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..payout.address import is_base58_address


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class SigningIdentity:
    """
    The custodial payer.

    Key material stays with the ledger node's wallet; this only names the
    paying address and, if the wallet is encrypted, how to unlock it.
    """
    address: str
    wallet_passphrase: Optional[str] = None

    def __repr__(self) -> str:
        return f"SigningIdentity(address={self.address!r})"


@dataclass(frozen=True)
class HoldingAccount:
    """Where a given owner holds a given asset on the ledger."""
    owner: str
    asset_id: Optional[str]
    address: str

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "asset_id": self.asset_id,
            "address": self.address,
        }


# ============================================================================
# ABSTRACT LEDGER CLIENT
# ============================================================================

class LedgerClient(ABC):
    """
    Abstract base class for ledger backends.

    `asset_id=None` always denotes the ledger's native coin. Amounts crossing
    this interface are integers in minimal units.
    """

    def validate_address(self, address: str) -> bool:
        """
        Pure syntactic check of an account identifier.

        Subclasses narrow this to their own address format.
        """
        return is_base58_address(address)

    @abstractmethod
    async def get_asset_precision(self, asset_id: Optional[str]) -> int:
        """
        Get the number of decimal places of an asset.

        Raises:
            AssetNotFound: if the asset does not exist or cannot be read
        """
        pass

    @abstractmethod
    async def get_account_holdings(self, account_id: str, asset_id: Optional[str]) -> int:
        """
        Get an account's holdings of an asset, in minimal units.

        Raises:
            QueryUnavailable: if the balance cannot be read
        """
        pass

    @abstractmethod
    async def resolve_or_create_holding_account(
        self,
        owner_id: str,
        asset_id: Optional[str]
    ) -> HoldingAccount:
        """
        Find, or create, the account in which `owner_id` holds `asset_id`.

        Raises:
            AccountSetupFailed: if the account cannot be resolved or created
        """
        pass

    async def resolve_payer_account(
        self,
        identity: SigningIdentity,
        asset_id: Optional[str]
    ) -> HoldingAccount:
        """
        Resolve the payer's holding account.

        Backends that can check signing authority over the account override
        this; the default treats the payer like any other owner.
        """
        return await self.resolve_or_create_holding_account(identity.address, asset_id)

    @abstractmethod
    async def submit_transfer(
        self,
        from_account: HoldingAccount,
        to_account: HoldingAccount,
        asset_id: Optional[str],
        amount: int,
        signing_identity: SigningIdentity,
    ) -> str:
        """
        Submit a transfer and wait for it to settle.

        Args:
            from_account: Payer's holding account
            to_account: Recipient's holding account
            asset_id: Asset to move, None for the native coin
            amount: Amount in minimal units
            signing_identity: Identity authorizing the transfer

        Returns:
            Settlement reference (transaction id)

        Raises:
            SettlementFailed: if the ledger rejected the transfer
            SettlementUnconfirmed: if confirmation timed out
        """
        pass
