"""
rewardpayout/ledger/

Ledger collaborators for the payout engine.

Currently supports Evrmore (native EVR and Evrmore assets) through an
evrmored node. Other backends subclass LedgerClient.
"""

from .base import (
    LedgerClient,
    HoldingAccount,
    SigningIdentity,
)

from .rpc import (
    EvrmoreRPC,
    RPCError,
)

from .evrmore import (
    EvrmoreLedger,
    EVR_PRECISION,
    select_network,
)

__all__ = [
    # Interface
    "LedgerClient",
    "HoldingAccount",
    "SigningIdentity",
    # Evrmore node
    "EvrmoreRPC",
    "RPCError",
    "EvrmoreLedger",
    "EVR_PRECISION",
    "select_network",
]
