"""
rewardpayout/payout/audit.py

Audit trail of payout attempts.

AuditLog is the sink interface the executors report to. The default
implementation writes structured records to the "rewardpayout.audit" logger;
rewardpayout.logs renders the `audit` field into the JSON log file.
"""

import logging
import time
from typing import Any, Dict, Optional

from ..errors import FailureKind
from .models import amount_to_json

AUDIT_LOGGER_NAME = "rewardpayout.audit"


class AuditLog:
    """Records payout attempts as structured log entries."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def _emit(self, level: int, message: str, fields: Dict[str, Any]) -> None:
        fields["timestamp"] = time.time()
        self.logger.log(level, message, extra={"audit": fields})

    def transfer_started(self, recipient: str, amount: Any) -> None:
        self._emit(logging.INFO, "Starting token transfer", {
            "event": "transfer_started",
            "recipient": recipient,
            "amount": amount_to_json(amount),
        })

    def transfer_completed(self, reference: str, recipient: str, amount: Any) -> None:
        self._emit(logging.INFO, "Token transfer completed", {
            "event": "transfer_completed",
            "transaction": reference,
            "recipient": recipient,
            "amount": amount_to_json(amount),
        })

    def transfer_failed(
        self,
        recipient: str,
        amount: Any,
        kind: FailureKind,
        reason: str
    ) -> None:
        self._emit(logging.ERROR, "Token transfer failed", {
            "event": "transfer_failed",
            "recipient": recipient,
            "amount": amount_to_json(amount),
            "kind": str(kind),
            "error": reason,
        })
