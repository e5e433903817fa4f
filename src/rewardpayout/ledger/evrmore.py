"""
rewardpayout/ledger/evrmore.py

LedgerClient backed by an evrmored node.

Payouts are either native EVR or an Evrmore asset (e.g. SATORI). The node's
wallet holds the payer's keys and signs; this module only asks it to move
funds and then watches for confirmation.

Every transfer spends the payer address's own UTXOs and returns change to
the payer address, so the holdings read by the balance guard are the coins
the next transfer will spend.

Usage:
    from rewardpayout.ledger import EvrmoreRPC, EvrmoreLedger, select_network

    select_network("testnet")
    rpc = EvrmoreRPC(url, auth=(user, password))
    ledger = EvrmoreLedger(rpc, min_confirmations=1)
    units = await ledger.get_asset_precision("SATORI")
"""

import functools
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import trio
from evrmore import SelectParams
from evrmore.wallet import CEvrmoreAddress

from ..errors import (
    AccountSetupFailed,
    AssetNotFound,
    QueryUnavailable,
    SettlementFailed,
    SettlementUnconfirmed,
)
from ..payout.address import is_base58_address
from ..payout.units import from_minimal_units, to_minimal_units
from .base import HoldingAccount, LedgerClient, SigningIdentity
from .rpc import EvrmoreRPC, RPCError

logger = logging.getLogger("rewardpayout.ledger.evrmore")


# ============================================================================
# CONSTANTS
# ============================================================================

EVR_PRECISION = 8  # 1 EVR = 100M satoshis
MAX_ASSET_PRECISION = 8  # Evrmore asset "units" are 0-8
WALLET_UNLOCK_SECONDS = 60
DEFAULT_CONFIRMATION_TIMEOUT = 120.0  # seconds
DEFAULT_POLL_INTERVAL = 5.0  # seconds
FEE_PER_OUTPUT = Decimal("0.01")  # EVR
EVR_DUST_THRESHOLD = Decimal("0.0001")  # smaller change is left to the fee
MAX_UTXO_CONFIRMATIONS = 9999999
NETWORKS = ("mainnet", "testnet", "regtest")


def select_network(network: str) -> None:
    """
    Select the address network for python-evrmorelib.

    python-evrmorelib keeps the selection process-wide, so call this once at
    startup before any address is decoded.

    Raises:
        ValueError: for an unknown network name
    """
    if network not in NETWORKS:
        raise ValueError(f"Unknown network {network!r}; expected one of {', '.join(NETWORKS)}")
    SelectParams(network)
    logger.info(f"Address network: {network}")


class EvrmoreLedger(LedgerClient):
    """
    Evrmore implementation of LedgerClient.

    UTXO chains have no per-asset token accounts, so holding-account
    resolution only checks the address with the node (and, for the payer,
    that the node's wallet owns it).
    """

    def __init__(
        self,
        rpc: EvrmoreRPC,
        min_confirmations: int = 1,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Initialize EvrmoreLedger.

        Addresses are decoded for the network chosen with select_network().

        Args:
            rpc: Node RPC client
            min_confirmations: Confirmations to wait for; 0 accepts mempool
            confirmation_timeout: Seconds to wait before reporting unconfirmed
            poll_interval: Seconds between confirmation checks
        """
        if min_confirmations < 0:
            raise ValueError("min_confirmations must be >= 0")

        self.rpc = rpc
        self.min_confirmations = min_confirmations
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval

        # With 0 confirmations the payer's unconfirmed change must stay spendable
        self._utxo_min_conf = min(min_confirmations, 1)
        self._precision_cache: Dict[str, int] = {}

    async def _call(self, method: str, *params) -> Any:
        """Run a blocking RPC call on a worker thread."""
        return await trio.to_thread.run_sync(
            functools.partial(self.rpc.call, method, *params)
        )

    # ========================================================================
    # LedgerClient
    # ========================================================================

    def validate_address(self, address: str) -> bool:
        """Base-58 class check, then a base58check decode for the selected network."""
        if not is_base58_address(address):
            return False
        try:
            CEvrmoreAddress(address)
            return True
        except Exception:
            return False

    async def get_asset_precision(self, asset_id: Optional[str]) -> int:
        if asset_id is None:
            return EVR_PRECISION

        cached = self._precision_cache.get(asset_id)
        if cached is not None:
            return cached

        try:
            data = await self._call("getassetdata", asset_id)
        except RPCError as e:
            raise AssetNotFound(f"Could not read asset {asset_id}: {e}")

        if not data or "units" not in data:
            raise AssetNotFound(f"Asset {asset_id} not found on chain")

        units = int(data["units"])
        if not 0 <= units <= MAX_ASSET_PRECISION:
            raise AssetNotFound(f"Asset {asset_id} reports invalid units: {units}")

        self._precision_cache[asset_id] = units
        logger.debug(f"Asset {asset_id} has {units} decimal places")
        return units

    async def get_account_holdings(self, account_id: str, asset_id: Optional[str]) -> int:
        try:
            if asset_id is None:
                utxos = await self._coin_utxos(account_id)
                total = sum((Decimal(u["amount"]) for u in utxos), Decimal(0))
                return to_minimal_units(total, EVR_PRECISION)

            balances = await self._call("listassetbalancesbyaddress", account_id)
            quantity = Decimal((balances or {}).get(asset_id, 0))
        except RPCError as e:
            raise QueryUnavailable(f"Balance query failed for {account_id}: {e}")

        try:
            precision = await self.get_asset_precision(asset_id)
        except AssetNotFound as e:
            raise QueryUnavailable(str(e))
        return to_minimal_units(quantity, precision)

    async def resolve_or_create_holding_account(
        self,
        owner_id: str,
        asset_id: Optional[str]
    ) -> HoldingAccount:
        try:
            info = await self._call("validateaddress", owner_id)
        except RPCError as e:
            raise AccountSetupFailed(f"Failed to resolve account {owner_id}: {e}")

        if not info or not info.get("isvalid"):
            raise AccountSetupFailed(f"Node rejected address {owner_id}")

        return HoldingAccount(owner=owner_id, asset_id=asset_id, address=owner_id)

    async def resolve_payer_account(
        self,
        identity: SigningIdentity,
        asset_id: Optional[str]
    ) -> HoldingAccount:
        """Resolve the payer's account and check the node's wallet can sign for it."""
        try:
            info = await self._call("validateaddress", identity.address)
        except RPCError as e:
            raise AccountSetupFailed(f"Failed to resolve payer account: {e}")

        if not info or not info.get("isvalid"):
            raise AccountSetupFailed(f"Node rejected payer address {identity.address}")
        if not info.get("ismine"):
            raise AccountSetupFailed(
                f"Payer address {identity.address} is not held by the node wallet"
            )

        return HoldingAccount(owner=identity.address, asset_id=asset_id, address=identity.address)

    async def submit_transfer(
        self,
        from_account: HoldingAccount,
        to_account: HoldingAccount,
        asset_id: Optional[str],
        amount: int,
        signing_identity: SigningIdentity,
    ) -> str:
        try:
            precision = await self.get_asset_precision(asset_id)
        except AssetNotFound as e:
            raise SettlementFailed(str(e))
        quantity = from_minimal_units(amount, precision)

        unlocked = False
        try:
            if signing_identity.wallet_passphrase:
                await self._call(
                    "walletpassphrase",
                    signing_identity.wallet_passphrase,
                    WALLET_UNLOCK_SECONDS,
                )
                unlocked = True

            if asset_id is None:
                txid = await self._send_coins(from_account.address, to_account.address, quantity)
            else:
                result = await self._call(
                    "transferfromaddress",
                    asset_id,
                    from_account.address,
                    quantity,
                    to_account.address,
                    "",                     # message
                    0,                      # expire time
                    from_account.address,   # EVR change
                    from_account.address,   # asset change
                )
                txid = result[0] if isinstance(result, list) else result
        except RPCError as e:
            raise SettlementFailed(e.message)
        finally:
            if unlocked:
                await self._lock_wallet()

        if not isinstance(txid, str) or not txid:
            raise SettlementFailed(f"Node returned no transaction id: {txid!r}")

        logger.info(
            f"Submitted {quantity} {asset_id or 'EVR'} to {to_account.address}: {txid}"
        )
        await self.wait_for_confirmation(txid)
        return txid

    # ========================================================================
    # NATIVE EVR
    # ========================================================================

    async def _coin_utxos(self, address: str) -> List[dict]:
        """Spendable EVR outputs (no asset attached) held by `address`."""
        utxos = await self._call(
            "listunspent", self._utxo_min_conf, MAX_UTXO_CONFIRMATIONS, [address]
        )
        return [u for u in utxos or [] if "asset" not in u and u.get("amount", 0) > 0]

    async def _send_coins(self, payer: str, recipient: str, quantity: Decimal) -> str:
        """
        Pay `quantity` EVR from the payer's UTXOs with change back to the payer.

        Process:
        1. List the payer address's EVR UTXOs
        2. Select enough of them to cover amount + fee
        3. Build a raw transaction (recipient output + change to payer)
        4. Sign with the node wallet and broadcast

        Returns:
            Transaction hash

        Raises:
            SettlementFailed: if the payer's UTXOs cannot cover amount + fee,
                or the wallet could not sign
            RPCError: if the node rejects a step
        """
        fee = FEE_PER_OUTPUT * 2  # recipient + change
        needed = quantity + fee

        selected = []
        total = Decimal(0)
        for utxo in await self._coin_utxos(payer):
            if total >= needed:
                break
            selected.append(utxo)
            total += Decimal(utxo["amount"])

        if total < needed:
            raise SettlementFailed(
                f"Insufficient EVR at {payer}: have {total}, need {needed} including fee"
            )

        inputs = [{"txid": u["txid"], "vout": u["vout"]} for u in selected]
        outputs = {recipient: quantity}
        change = total - needed
        if change > EVR_DUST_THRESHOLD:
            outputs[payer] = outputs.get(payer, Decimal(0)) + change

        raw_tx = await self._call("createrawtransaction", inputs, outputs)

        signed = await self._call("signrawtransaction", raw_tx)
        if not signed or not signed.get("complete"):
            errors = (signed or {}).get("errors", [])
            raise SettlementFailed(f"Failed to sign transaction: {errors}")

        return await self._call("sendrawtransaction", signed["hex"])

    async def _lock_wallet(self) -> None:
        try:
            await self._call("walletlock")
        except RPCError as e:
            logger.warning(f"Failed to lock wallet after transfer: {e}")

    # ========================================================================
    # CONFIRMATION
    # ========================================================================

    async def get_confirmations(self, txid: str) -> int:
        """Number of confirmations of a wallet transaction (negative if conflicted)."""
        tx = await self._call("gettransaction", txid)
        return int(tx.get("confirmations", 0))

    async def wait_for_confirmation(self, txid: str) -> None:
        """
        Poll until `txid` reaches min_confirmations.

        Raises:
            SettlementFailed: if the transaction was conflicted out
            SettlementUnconfirmed: if the timeout passed first
        """
        if self.min_confirmations == 0:
            return

        with trio.move_on_after(self.confirmation_timeout):
            while True:
                try:
                    confirmations = await self.get_confirmations(txid)
                except RPCError as e:
                    logger.warning(f"Confirmation check failed for {txid}: {e}")
                else:
                    if confirmations < 0:
                        raise SettlementFailed(f"Transaction {txid} was conflicted")
                    if confirmations >= self.min_confirmations:
                        logger.debug(f"{txid} confirmed ({confirmations})")
                        return
                await trio.sleep(self.poll_interval)

        raise SettlementUnconfirmed(txid, self.confirmation_timeout)
