"""
rewardpayout - Custodial reward payout engine for Evrmore assets

Moves earned rewards from one custodial payer account to player addresses:
- Address validation and exact decimal-to-minimal-unit conversion
- Advisory (fail-open) balance guard
- Single transfers and strictly sequential, failure-isolated batches
- Evrmore node ledger client over JSON-RPC
- REST API and command line front ends

Usage:
    from rewardpayout import PayoutConfig, PayoutRequest, build_service

    service = build_service(PayoutConfig.from_env())

    result = await service.batch.execute_batch([
        PayoutRequest("Eaddr1...", 5),
        PayoutRequest("Eaddr2...", 1),
    ])
    print(result.summary)

REST API Usage:
    from rewardpayout.api import PayoutAPI

    api = PayoutAPI(service, host="127.0.0.1", port=3000)
    await api.start()
"""

from .errors import (
    FailureKind,
    PayoutError,
    InvalidAddress,
    InvalidAmount,
    AssetNotFound,
    PrecisionLookupFailed,
    InsufficientFunds,
    AccountSetupFailed,
    SettlementFailed,
    SettlementUnconfirmed,
    QueryUnavailable,
    BatchSizeError,
    ConfigError,
)
from .payout import (
    PayoutRequest,
    PayoutOutcome,
    BatchResult,
    AddressValidator,
    UnitConverter,
    UnitMode,
    BalanceGuard,
    SingleTransferExecutor,
    BatchTransferExecutor,
    MAX_BATCH_SIZE,
)
from .ledger import (
    LedgerClient,
    HoldingAccount,
    SigningIdentity,
    EvrmoreRPC,
    EvrmoreLedger,
)
from .config import PayoutConfig
from .service import PayoutService, build_service
from .api import PayoutAPI

__version__ = "1.0.0"
__all__ = [
    # Errors
    "FailureKind",
    "PayoutError",
    "InvalidAddress",
    "InvalidAmount",
    "AssetNotFound",
    "PrecisionLookupFailed",
    "InsufficientFunds",
    "AccountSetupFailed",
    "SettlementFailed",
    "SettlementUnconfirmed",
    "QueryUnavailable",
    "BatchSizeError",
    "ConfigError",
    # Engine
    "PayoutRequest",
    "PayoutOutcome",
    "BatchResult",
    "AddressValidator",
    "UnitConverter",
    "UnitMode",
    "BalanceGuard",
    "SingleTransferExecutor",
    "BatchTransferExecutor",
    "MAX_BATCH_SIZE",
    # Ledger
    "LedgerClient",
    "HoldingAccount",
    "SigningIdentity",
    "EvrmoreRPC",
    "EvrmoreLedger",
    # Service
    "PayoutConfig",
    "PayoutService",
    "build_service",
    "PayoutAPI",
]
