"""
rewardpayout/config.py

Configuration constants and data classes for rewardpayout.

Settings come from environment variables (PAYOUT_*), read once by
PayoutConfig.from_env() and passed explicitly to whatever needs them.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from .errors import ConfigError
from .ledger.rpc import DEFAULT_RPC_URL
from .payout.executor import MAX_BATCH_SIZE
from .payout.units import UnitMode


# Default HTTP listening port
DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"

# Client validation header
DEFAULT_VALIDATION_HEADER = "X-Unity-Validation"

# Rate limiting: max 100 requests per 15 minutes per client IP
RATE_LIMIT_PARAMS = {
    "max_requests": 100,
    "window_seconds": 15 * 60,
    "max_clients": 10_000,
}

# Confirmation settings
CONFIRMATION_PARAMS = {
    "min_confirmations": 1,
    "timeout_seconds": 120.0,
    "poll_interval_seconds": 5.0,
}

# Log file settings
LOG_PARAMS = {
    "directory": "logs",
    "file_prefix": "reward-distribution",
    "level": "INFO",
}

# Variables that must be set for a real deployment
REQUIRED_ENV = ("PAYOUT_PAYER_ADDRESS", "PAYOUT_RPC_URL")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str, minimum: int = 0) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if parsed < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def _parse_float(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _parse_list(value: str) -> List[str]:
    """Comma-separated values, blanks dropped."""
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class PayoutConfig:
    """Everything needed to build the ledger client, executors and API."""
    payer_address: str = ""
    wallet_passphrase: Optional[str] = None
    rpc_url: str = DEFAULT_RPC_URL
    rpc_user: str = ""
    rpc_password: str = ""
    network: str = "mainnet"
    asset: Optional[str] = None
    unit_mode: UnitMode = UnitMode.SCALED_BY_PRECISION
    max_batch_size: int = MAX_BATCH_SIZE
    min_confirmations: int = CONFIRMATION_PARAMS["min_confirmations"]
    confirmation_timeout: float = CONFIRMATION_PARAMS["timeout_seconds"]
    dry_run: bool = False
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    validation_header: str = DEFAULT_VALIDATION_HEADER
    validation_token: Optional[str] = None
    allowed_ips: List[str] = field(default_factory=list)
    trusted_proxies: List[str] = field(default_factory=list)
    log_dir: str = LOG_PARAMS["directory"]
    file_logging: bool = True
    log_level: str = LOG_PARAMS["level"]

    @property
    def rpc_auth(self) -> Optional[Tuple[str, str]]:
        """Basic-auth tuple for the node, or None when no user is set."""
        if not self.rpc_user:
            return None
        return (self.rpc_user, self.rpc_password)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PayoutConfig":
        """
        Build a config from PAYOUT_* environment variables.

        Raises:
            ConfigError: if a variable has an invalid value
        """
        env = os.environ if environ is None else environ
        get = env.get

        try:
            unit_mode = UnitMode.from_string(get("PAYOUT_UNIT_MODE", "scaled"))
        except ValueError as e:
            raise ConfigError(str(e))

        allowed_ips = _parse_list(get("PAYOUT_ALLOWED_IPS", ""))
        trusted_proxies = _parse_list(get("PAYOUT_TRUSTED_PROXIES", ""))

        return cls(
            payer_address=get("PAYOUT_PAYER_ADDRESS", "").strip(),
            wallet_passphrase=get("PAYOUT_WALLET_PASSPHRASE") or None,
            rpc_url=get("PAYOUT_RPC_URL", DEFAULT_RPC_URL),
            rpc_user=get("PAYOUT_RPC_USER", ""),
            rpc_password=get("PAYOUT_RPC_PASSWORD", ""),
            network=get("PAYOUT_NETWORK", "mainnet").strip().lower(),
            asset=get("PAYOUT_ASSET", "").strip().upper() or None,
            unit_mode=unit_mode,
            max_batch_size=_parse_int(
                "PAYOUT_MAX_BATCH_SIZE", get("PAYOUT_MAX_BATCH_SIZE", str(MAX_BATCH_SIZE)), minimum=1
            ),
            min_confirmations=_parse_int(
                "PAYOUT_MIN_CONFIRMATIONS",
                get("PAYOUT_MIN_CONFIRMATIONS", str(CONFIRMATION_PARAMS["min_confirmations"])),
            ),
            confirmation_timeout=_parse_float(
                "PAYOUT_CONFIRMATION_TIMEOUT",
                get("PAYOUT_CONFIRMATION_TIMEOUT", str(CONFIRMATION_PARAMS["timeout_seconds"])),
            ),
            dry_run=_parse_bool("PAYOUT_DRY_RUN", get("PAYOUT_DRY_RUN", "")),
            host=get("PAYOUT_HOST", DEFAULT_HOST),
            port=_parse_int("PAYOUT_PORT", get("PAYOUT_PORT", str(DEFAULT_PORT)), minimum=1),
            validation_header=get("PAYOUT_VALIDATION_HEADER", DEFAULT_VALIDATION_HEADER),
            validation_token=get("PAYOUT_VALIDATION_TOKEN") or None,
            allowed_ips=allowed_ips,
            trusted_proxies=trusted_proxies,
            log_dir=get("PAYOUT_LOG_DIR", LOG_PARAMS["directory"]),
            file_logging=not _parse_bool(
                "PAYOUT_DISABLE_FILE_LOGGING", get("PAYOUT_DISABLE_FILE_LOGGING", "")
            ),
            log_level=get("PAYOUT_LOG_LEVEL", LOG_PARAMS["level"]).upper(),
        )

    def require_payer(self) -> str:
        """
        Raises:
            ConfigError: if no payer address is configured
        """
        if not self.payer_address:
            raise ConfigError("PAYOUT_PAYER_ADDRESS is required")
        return self.payer_address


def check_env(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Report which required and optional variables are set (values never included)."""
    env = os.environ if environ is None else environ
    optional = (
        "PAYOUT_ASSET",
        "PAYOUT_RPC_USER",
        "PAYOUT_RPC_PASSWORD",
        "PAYOUT_WALLET_PASSPHRASE",
        "PAYOUT_VALIDATION_TOKEN",
        "PAYOUT_ALLOWED_IPS",
        "PAYOUT_TRUSTED_PROXIES",
    )
    return {
        "required": {name: bool(env.get(name)) for name in REQUIRED_ENV},
        "optional": {name: bool(env.get(name)) for name in optional},
    }
