"""
rewardpayout/payout/models.py

Value objects of the payout engine: requests in, outcomes out.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import FailureKind
from .units import MAX_AMOUNT_EXPONENT

Amount = Union[int, float, str, Decimal]


def amount_to_json(amount: Any) -> Any:
    """
    Keep whole amounts as ints and everything else as plain-notation strings.

    Out-of-range amounts keep their exponent form.
    """
    if isinstance(amount, Decimal):
        if not amount.is_finite() or amount.adjusted() >= MAX_AMOUNT_EXPONENT:
            return str(amount)
        if amount == amount.to_integral_value():
            return int(amount)
        return format(amount, "f")
    return amount


# ============================================================================
# REQUEST
# ============================================================================

@dataclass(frozen=True)
class PayoutRequest:
    """
    One payout to make.

    `amount` is kept exactly as the caller supplied it; it is validated by
    the executor, so a bad request still yields an outcome.
    `asset_precision` overrides the ledger's precision lookup when set.
    """
    recipient_address: str
    amount: Amount
    asset_precision: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutRequest":
        """
        Parse the wire form {"address": str, "amount": number, "precision"?: int}.

        Raises:
            ValueError: if the entry is structurally malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Each payout must be an object")
        if "address" not in data:
            raise ValueError('"address" is required')
        if "amount" not in data:
            raise ValueError('"amount" is required')

        address = data["address"]
        if not isinstance(address, str):
            raise ValueError('"address" must be a string')

        amount = data["amount"]
        if isinstance(amount, bool) or not isinstance(amount, (int, float, str, Decimal)):
            raise ValueError('"amount" must be a number')

        precision = data.get("precision")
        if precision is not None and (isinstance(precision, bool) or not isinstance(precision, int)):
            raise ValueError('"precision" must be an integer')

        return cls(recipient_address=address, amount=amount, asset_precision=precision)

    def to_dict(self) -> dict:
        data = {
            "address": self.recipient_address,
            "amount": amount_to_json(self.amount),
        }
        if self.asset_precision is not None:
            data["precision"] = self.asset_precision
        return data


# ============================================================================
# OUTCOMES
# ============================================================================

@dataclass(frozen=True)
class PayoutOutcome:
    """
    Result of one payout attempt.

    Exactly one of settlement_reference / failure_reason is set, matching
    `success`.
    """
    recipient_address: str
    amount: Amount
    success: bool
    settlement_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    failure_kind: Optional[FailureKind] = None

    def __post_init__(self):
        if self.success:
            if not self.settlement_reference or self.failure_reason is not None:
                raise ValueError("A successful outcome carries only a settlement reference")
        else:
            if not self.failure_reason or self.settlement_reference is not None:
                raise ValueError("A failed outcome carries only a failure reason")

    @classmethod
    def settled(cls, request: PayoutRequest, reference: str) -> "PayoutOutcome":
        return cls(
            recipient_address=request.recipient_address,
            amount=request.amount,
            success=True,
            settlement_reference=reference,
        )

    @classmethod
    def failed(
        cls,
        request: PayoutRequest,
        reason: str,
        kind: FailureKind = FailureKind.UNEXPECTED
    ) -> "PayoutOutcome":
        return cls(
            recipient_address=request.recipient_address,
            amount=request.amount,
            success=False,
            failure_reason=reason or str(kind),
            failure_kind=kind,
        )

    def to_dict(self) -> dict:
        data = {
            "address": self.recipient_address,
            "amount": amount_to_json(self.amount),
            "success": self.success,
        }
        if self.success:
            data["transaction"] = self.settlement_reference
        else:
            data["error"] = self.failure_reason
            data["error_kind"] = str(self.failure_kind) if self.failure_kind else None
        return data


@dataclass(frozen=True)
class BatchResult:
    """Outcomes of a batch, in request order. Counts are always derived."""
    outcomes: Tuple[PayoutOutcome, ...] = ()

    def __post_init__(self):
        # Accept any sequence, store an immutable one
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)

    def __getitem__(self, index: int) -> PayoutOutcome:
        return self.outcomes[index]

    @property
    def total_requested(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def summary(self) -> str:
        return (
            f"Batch reward distribution completed. "
            f"{self.success_count} successful, {self.failure_count} failed"
        )

    def to_dict(self) -> dict:
        return {
            "total_requested": self.total_requested,
            "successful": self.success_count,
            "failed": self.failure_count,
            "results": [o.to_dict() for o in self.outcomes],
        }


@dataclass(frozen=True)
class BalanceCheck:
    """
    Advisory balance snapshot. `available` is None when the query failed,
    in which case `sufficient` is True (fail-open).
    """
    sufficient: bool
    available: Optional[int] = None

    @property
    def known(self) -> bool:
        return self.available is not None
