"""
rewardpayout/payout/

The payout engine: validation, unit conversion, balance guard, single and
batch transfer execution.
"""

from .models import (
    PayoutRequest,
    PayoutOutcome,
    BatchResult,
    BalanceCheck,
)

from .address import (
    AddressValidator,
    is_base58_address,
)

from .units import (
    UnitConverter,
    UnitMode,
    parse_amount,
    to_minimal_units,
    from_minimal_units,
    MAX_PRECISION,
)

from .balance import BalanceGuard
from .audit import AuditLog

from .executor import (
    SingleTransferExecutor,
    BatchTransferExecutor,
    MAX_BATCH_SIZE,
)

__all__ = [
    # Models
    "PayoutRequest",
    "PayoutOutcome",
    "BatchResult",
    "BalanceCheck",
    # Validation & units
    "AddressValidator",
    "is_base58_address",
    "UnitConverter",
    "UnitMode",
    "parse_amount",
    "to_minimal_units",
    "from_minimal_units",
    "MAX_PRECISION",
    # Execution
    "BalanceGuard",
    "AuditLog",
    "SingleTransferExecutor",
    "BatchTransferExecutor",
    "MAX_BATCH_SIZE",
]
