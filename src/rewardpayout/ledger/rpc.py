"""
rewardpayout/ledger/rpc.py

JSON-RPC client for an evrmored node.

Provides raw access to the node's wallet and asset RPCs:
- Asset metadata and balances
- UTXO listing
- Transfers (raw transactions / transferfromaddress)
- Transaction lookups
"""

import logging
from decimal import Decimal
from typing import Any, Optional, Tuple

import requests

logger = logging.getLogger("rewardpayout.ledger.rpc")


# ============================================================================
# CONFIGURATION
# ============================================================================

DEFAULT_RPC_URL = "http://127.0.0.1:8819"
DEFAULT_TIMEOUT = 30.0  # seconds

# Client identification
CLIENT_NAME = "rewardpayout"

# Codes returned by evrmored that are worth naming
RPC_WALLET_ERROR = -4
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_WALLET_INSUFFICIENT_FUNDS = -6
RPC_INVALID_PARAMETER = -8
RPC_WALLET_UNLOCK_NEEDED = -13


# ============================================================================
# ERRORS
# ============================================================================

class RPCError(Exception):
    """Raised for node-side errors and for transport failures."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code {self.code})"


# ============================================================================
# RPC CLIENT
# ============================================================================

class EvrmoreRPC:
    """
    Blocking JSON-RPC 1.0 client for evrmored.

    Numbers with a fractional part are decoded as Decimal so that asset
    quantities never pass through binary floats.

    Example:
        rpc = EvrmoreRPC("http://127.0.0.1:8819", auth=("user", "pass"))
        units = rpc.call("getassetdata", "SATORI")["units"]
        txid = rpc.call("sendtoaddress", "Exxxxxxxx...", Decimal("1.5"))
        rpc.close()
    """

    def __init__(
        self,
        url: str = DEFAULT_RPC_URL,
        auth: Optional[Tuple[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            url: Node RPC URL, including /wallet/<name> for multi-wallet nodes
            auth: (user, password) for HTTP basic auth
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.url = url
        self.timeout = timeout

        self._session = session or requests.Session()
        if auth is not None:
            self._session.auth = auth
        self._session.headers.update({"Content-Type": "application/json"})
        self._request_id = 0

    def _next_id(self) -> int:
        """Get next request ID."""
        self._request_id += 1
        return self._request_id

    def call(self, method: str, *params) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name
            *params: Method parameters

        Returns:
            Result from node

        Raises:
            RPCError: On communication or node error
        """
        request = {
            "jsonrpc": "1.0",
            "id": f"{CLIENT_NAME}-{self._next_id()}",
            "method": method,
            "params": [_encode_param(p) for p in params],
        }

        try:
            response = self._session.post(self.url, json=request, timeout=self.timeout)
        except requests.RequestException as e:
            raise RPCError(f"Node unreachable: {e}")

        # evrmored answers RPC errors with HTTP 500 and a JSON body
        try:
            payload = response.json(parse_float=Decimal)
        except ValueError:
            raise RPCError(
                f"Invalid response from node (HTTP {response.status_code})",
                code=response.status_code,
            )

        error = payload.get("error")
        if error:
            if isinstance(error, dict):
                raise RPCError(error.get("message", str(error)), code=error.get("code"))
            raise RPCError(str(error))

        logger.debug(f"{method} -> HTTP {response.status_code}")
        return payload.get("result")

    def ping(self) -> bool:
        """
        Check that the node answers.

        Returns:
            True if node responds
        """
        try:
            self.call("ping")
            return True
        except RPCError:
            return False

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "EvrmoreRPC":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def _encode_param(value: Any) -> Any:
    """Decimals go on the wire as plain-notation strings (evrmored parses amounts from strings)."""
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {k: _encode_param(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode_param(v) for v in value]
    return value
