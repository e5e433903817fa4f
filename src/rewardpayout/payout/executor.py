"""
rewardpayout/payout/executor.py

The batch payout engine.

SingleTransferExecutor moves one payout through validation, unit
conversion, the balance guard, account resolution and submission.
BatchTransferExecutor drives many of them one after another and turns every
failure into an outcome, so one bad request never blocks the rest.

Batches run strictly sequentially: the payer account has a single
sequencing cursor on the ledger, and concurrent submissions from it can
conflict. Do not parallelize without allocating sequence numbers at the
ledger boundary first.

Usage:
    from rewardpayout.payout import (
        SingleTransferExecutor, BatchTransferExecutor, PayoutRequest,
    )

    single = SingleTransferExecutor(ledger, payer, asset_id="SATORI")
    batch = BatchTransferExecutor(single, max_batch_size=100)
    result = await batch.execute_batch([
        PayoutRequest("Eaddr1...", 5),
        PayoutRequest("Eaddr2...", "1.25"),
    ])
"""

import itertools
import logging
from decimal import Decimal
from typing import Optional, Sequence, TYPE_CHECKING

from ..errors import (
    AccountSetupFailed,
    BatchSizeError,
    FailureKind,
    InsufficientFunds,
    InvalidAddress,
    InvalidAmount,
    PayoutError,
    PrecisionLookupFailed,
    SettlementFailed,
    SettlementUnconfirmed,
)
from .address import AddressValidator
from .audit import AuditLog
from .balance import BalanceGuard
from .models import BatchResult, PayoutOutcome, PayoutRequest
from .units import UnitConverter, UnitMode, parse_amount

if TYPE_CHECKING:
    from ..ledger.base import HoldingAccount, LedgerClient, SigningIdentity

logger = logging.getLogger("rewardpayout.payout.executor")

MAX_BATCH_SIZE = 100


# ============================================================================
# SINGLE TRANSFER
# ============================================================================

class SingleTransferExecutor:
    """
    Executes one payout from the custodial payer.

    Failures are raised as PayoutError subclasses, in step order:
    InvalidAddress, InvalidAmount, PrecisionLookupFailed, InsufficientFunds,
    AccountSetupFailed, SettlementFailed / SettlementUnconfirmed.
    Nothing is retried here.
    """

    def __init__(
        self,
        ledger: "LedgerClient",
        payer: "SigningIdentity",
        asset_id: Optional[str] = None,
        unit_mode: UnitMode = UnitMode.SCALED_BY_PRECISION,
        validator: Optional[AddressValidator] = None,
        balance_guard: Optional[BalanceGuard] = None,
        audit: Optional[AuditLog] = None,
        dry_run: bool = False,
    ):
        """
        Initialize SingleTransferExecutor.

        Args:
            ledger: Ledger client used for every external call
            payer: Signing identity of the custodial account
            asset_id: Asset to pay out, None for the native coin
            unit_mode: Whether request amounts need scaling by precision
            validator: Address validator (defaults to the ledger's predicate)
            balance_guard: Balance guard (defaults to one on the payer account)
            audit: Audit sink
            dry_run: If True, stop before submission and return a dry-run reference
        """
        self.ledger = ledger
        self.payer = payer
        self.asset_id = asset_id
        self.converter = UnitConverter(unit_mode)
        self.validator = validator or AddressValidator(ledger.validate_address)
        self.balance_guard = balance_guard or BalanceGuard(ledger, payer.address, asset_id)
        self.audit = audit or AuditLog()
        self.dry_run = dry_run

        self._dry_run_counter = itertools.count(1)

    @property
    def unit_mode(self) -> UnitMode:
        return self.converter.mode

    async def execute(self, request: PayoutRequest) -> str:
        """
        Execute one payout.

        Returns:
            Settlement reference

        Raises:
            PayoutError: the first failing step
        """
        address = request.recipient_address

        # 1. Address
        if not self.validator.is_valid(address):
            raise InvalidAddress("Invalid recipient address")

        # 2. Amount
        amount = parse_amount(request.amount)

        # 3. Units
        minimal_units = await self._to_minimal_units(request, amount)

        # 4. Balance (advisory)
        check = await self.balance_guard.check_sufficient(minimal_units)
        if check.known and not check.sufficient:
            raise InsufficientFunds(available=check.available, required=minimal_units)

        # 5. Accounts
        from_account, to_account = await self._resolve_accounts(address)

        if self.dry_run:
            reference = f"dry_run_{next(self._dry_run_counter)}"
            logger.info(
                f"DRY RUN: Would transfer {minimal_units} units of "
                f"{self.asset_id or 'native coin'} to {address}"
            )
            return reference

        # 6. Submit and confirm
        return await self._submit(from_account, to_account, minimal_units)

    async def attempt(self, request: PayoutRequest) -> PayoutOutcome:
        """
        Execute one payout and report it as an outcome instead of raising.

        Only cancellation propagates.
        """
        self.audit.transfer_started(request.recipient_address, request.amount)
        try:
            reference = await self.execute(request)
        except PayoutError as e:
            self.audit.transfer_failed(request.recipient_address, request.amount, e.kind, e.message)
            return PayoutOutcome.failed(request, e.message, e.kind)
        except Exception as e:
            logger.exception(f"Unexpected error paying {request.recipient_address}")
            reason = str(e) or type(e).__name__
            self.audit.transfer_failed(
                request.recipient_address, request.amount, FailureKind.UNEXPECTED, reason
            )
            return PayoutOutcome.failed(request, reason, FailureKind.UNEXPECTED)

        self.audit.transfer_completed(reference, request.recipient_address, request.amount)
        return PayoutOutcome.settled(request, reference)

    # ========================================================================
    # STEPS
    # ========================================================================

    async def _to_minimal_units(self, request: PayoutRequest, amount: Decimal) -> int:
        if not self.converter.requires_precision:
            return self.converter.to_minimal_units(amount)

        precision = request.asset_precision
        if precision is None:
            try:
                precision = await self.ledger.get_asset_precision(self.asset_id)
            except Exception as e:
                raise PrecisionLookupFailed(
                    f"Could not resolve precision for {self.asset_id or 'native coin'}: {e}"
                )

        try:
            minimal_units = self.converter.to_minimal_units(amount, precision)
        except ValueError as e:
            raise PrecisionLookupFailed(str(e))

        if minimal_units <= 0:
            raise InvalidAmount(
                f"Amount {amount} is below the smallest unit at precision {precision}"
            )
        return minimal_units

    async def _resolve_accounts(self, address: str):
        try:
            from_account = await self.ledger.resolve_payer_account(self.payer, self.asset_id)
            to_account = await self.ledger.resolve_or_create_holding_account(address, self.asset_id)
        except AccountSetupFailed:
            raise
        except Exception as e:
            raise AccountSetupFailed(f"Failed to set up holding account: {e}")
        return from_account, to_account

    async def _submit(
        self,
        from_account: "HoldingAccount",
        to_account: "HoldingAccount",
        minimal_units: int
    ) -> str:
        try:
            return await self.ledger.submit_transfer(
                from_account,
                to_account,
                self.asset_id,
                minimal_units,
                self.payer,
            )
        except (SettlementFailed, SettlementUnconfirmed):
            raise
        except PayoutError as e:
            raise SettlementFailed(e.message)
        except Exception as e:
            raise SettlementFailed(str(e) or type(e).__name__)


# ============================================================================
# BATCH
# ============================================================================

class BatchTransferExecutor:
    """
    Runs a bounded list of payouts through a SingleTransferExecutor, in
    order, one at a time.

    The result has exactly one outcome per request, in request order.
    Only structurally invalid input (size out of bounds) raises.
    """

    def __init__(
        self,
        executor: SingleTransferExecutor,
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self.executor = executor
        self.max_batch_size = max_batch_size

    def validate_size(self, size: int, max_batch_size: Optional[int] = None) -> None:
        """
        Raises:
            BatchSizeError: if size is outside 1..max_batch_size
        """
        bound = max_batch_size if max_batch_size is not None else self.max_batch_size
        if not 1 <= size <= bound:
            raise BatchSizeError(size, bound)

    async def execute_batch(
        self,
        requests: Sequence[PayoutRequest],
        max_batch_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Execute a batch of payouts.

        Args:
            requests: Payouts, in the order outcomes will be reported
            max_batch_size: Override of the configured bound

        Returns:
            BatchResult with one outcome per request

        Raises:
            BatchSizeError: before any payout, if the batch is empty or too large
        """
        requests = list(requests)
        self.validate_size(len(requests), max_batch_size)

        logger.info(f"Processing batch of {len(requests)} payouts")

        outcomes = []
        for index, request in enumerate(requests):
            outcome = await self.executor.attempt(request)
            if not outcome.success:
                logger.debug(f"Payout {index} to {request.recipient_address} failed: {outcome.failure_reason}")
            outcomes.append(outcome)

        result = BatchResult(outcomes)
        logger.info(
            f"Batch complete: {result.total_requested} requested, "
            f"{result.success_count} successful, {result.failure_count} failed"
        )
        return result
