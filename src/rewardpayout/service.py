"""
rewardpayout/service.py

Wiring: builds the ledger client and executors from a PayoutConfig.

Every caller gets its own PayoutService with its own RPC session. The one
process-wide setting is the python-evrmorelib address network, selected
here when the Evrmore ledger is built.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .config import CONFIRMATION_PARAMS, PayoutConfig
from .errors import ConfigError
from .ledger import EvrmoreLedger, EvrmoreRPC, LedgerClient, SigningIdentity, select_network
from .payout import (
    AuditLog,
    BatchTransferExecutor,
    SingleTransferExecutor,
    from_minimal_units,
)

logger = logging.getLogger("rewardpayout.service")


@dataclass
class PayoutService:
    """The assembled engine for one payer."""
    config: PayoutConfig
    ledger: LedgerClient
    payer: SigningIdentity
    single: SingleTransferExecutor
    batch: BatchTransferExecutor

    @property
    def asset(self) -> Optional[str]:
        return self.config.asset

    async def get_balance(self) -> dict:
        """Payer holdings in minimal and display units (raises if unavailable)."""
        units = await self.single.balance_guard.get_available()
        precision = await self.ledger.get_asset_precision(self.asset)
        display: Decimal = from_minimal_units(units, precision)
        return {
            "balance": format(display, "f"),
            "balance_units": units,
            "precision": precision,
            "asset": self.asset or "EVR",
            "payer": self.payer.address,
        }


def build_service(
    config: PayoutConfig,
    ledger: Optional[LedgerClient] = None,
    audit: Optional[AuditLog] = None,
) -> PayoutService:
    """
    Assemble a PayoutService.

    Args:
        config: Service configuration (payer address is required)
        ledger: Ledger client to use; if None, selects config.network and
            builds an EvrmoreLedger on config.rpc_url
        audit: Audit sink shared by all transfers

    Raises:
        ConfigError: if the payer is not configured or the network is unknown
    """
    payer = SigningIdentity(
        address=config.require_payer(),
        wallet_passphrase=config.wallet_passphrase,
    )

    if ledger is None:
        try:
            select_network(config.network)
        except ValueError as e:
            raise ConfigError(str(e))
        rpc = EvrmoreRPC(config.rpc_url, auth=config.rpc_auth)
        ledger = EvrmoreLedger(
            rpc,
            min_confirmations=config.min_confirmations,
            confirmation_timeout=config.confirmation_timeout,
            poll_interval=CONFIRMATION_PARAMS["poll_interval_seconds"],
        )

    single = SingleTransferExecutor(
        ledger,
        payer,
        asset_id=config.asset,
        unit_mode=config.unit_mode,
        audit=audit,
        dry_run=config.dry_run,
    )
    batch = BatchTransferExecutor(single, max_batch_size=config.max_batch_size)

    logger.info(
        f"Payout service ready: payer={payer.address} asset={config.asset or 'EVR'} "
        f"mode={config.unit_mode} dry_run={config.dry_run}"
    )
    return PayoutService(config=config, ledger=ledger, payer=payer, single=single, batch=batch)
