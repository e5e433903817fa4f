"""
rewardpayout/errors.py

Failure taxonomy for payouts.

Every per-request failure is a PayoutError carrying a FailureKind, so the
batch executor can turn it into a structured outcome. Caller-input errors
(batch bounds, configuration) are plain ValueErrors and are never converted.
"""

from enum import Enum
from typing import Optional


class FailureKind(Enum):
    """Why a single payout did not settle."""
    INVALID_ADDRESS = "invalid_address"
    INVALID_AMOUNT = "invalid_amount"
    ASSET_NOT_FOUND = "asset_not_found"
    PRECISION_LOOKUP_FAILED = "precision_lookup_failed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_SETUP_FAILED = "account_setup_failed"
    SETTLEMENT_FAILED = "settlement_failed"
    SETTLEMENT_UNCONFIRMED = "settlement_unconfirmed"
    QUERY_UNAVAILABLE = "query_unavailable"
    UNEXPECTED = "unexpected"

    def __str__(self) -> str:
        return self.value

    @property
    def is_validation(self) -> bool:
        """True for failures detected before any ledger call."""
        return self in (FailureKind.INVALID_ADDRESS, FailureKind.INVALID_AMOUNT)


class PayoutError(Exception):
    """Base class for failures of a single payout attempt."""
    kind: FailureKind = FailureKind.UNEXPECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidAddress(PayoutError):
    kind = FailureKind.INVALID_ADDRESS


class InvalidAmount(PayoutError):
    kind = FailureKind.INVALID_AMOUNT


class AssetNotFound(PayoutError):
    kind = FailureKind.ASSET_NOT_FOUND


class PrecisionLookupFailed(PayoutError):
    kind = FailureKind.PRECISION_LOOKUP_FAILED


class InsufficientFunds(PayoutError):
    kind = FailureKind.INSUFFICIENT_FUNDS

    def __init__(self, available: int, required: int):
        super().__init__(
            f"Insufficient balance in payer account. "
            f"Available: {available}, Required: {required}"
        )
        self.available = available
        self.required = required


class AccountSetupFailed(PayoutError):
    kind = FailureKind.ACCOUNT_SETUP_FAILED


class SettlementFailed(PayoutError):
    """Submission was rejected; `detail` is the ledger's error text verbatim."""
    kind = FailureKind.SETTLEMENT_FAILED

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class SettlementUnconfirmed(PayoutError):
    """
    Submitted, but confirmation did not arrive in time.

    The transfer may still settle later; `reference` identifies it for
    reconciliation.
    """
    kind = FailureKind.SETTLEMENT_UNCONFIRMED

    def __init__(self, reference: str, timeout: Optional[float] = None):
        waited = f" after {timeout:g}s" if timeout is not None else ""
        super().__init__(f"Settlement unconfirmed{waited}: {reference}")
        self.reference = reference
        self.timeout = timeout


class QueryUnavailable(PayoutError):
    kind = FailureKind.QUERY_UNAVAILABLE


# ============================================================================
# CALLER-INPUT ERRORS
# ============================================================================

class BatchSizeError(ValueError):
    """Batch is empty or exceeds the configured bound."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            f"Batch must contain between 1 and {max_size} requests, got {size}"
        )
        self.size = size
        self.max_size = max_size


class ConfigError(ValueError):
    """Invalid or missing configuration."""
    pass
