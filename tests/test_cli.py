"""
Tests for rewardpayout/cli.py
"""

import json
import pytest
from unittest.mock import Mock, AsyncMock, patch

from click.testing import CliRunner

from rewardpayout import service as service_module
from rewardpayout.cli import main
from rewardpayout.ledger.base import HoldingAccount
from rewardpayout.payout.address import is_base58_address


PAYER = "EPayerAddress111111111111111111111"
VALID1 = "ERecipient1AddressAAAAAAAAAAAAAAAAA"
VALID2 = "ERecipient2AddressBBBBBBBBBBBBBBBBB"

BASE_ENV = {
    "PAYOUT_PAYER_ADDRESS": PAYER,
    "PAYOUT_RPC_URL": "http://node:8819",
    "PAYOUT_DISABLE_FILE_LOGGING": "true",
}


def create_mock_ledger(precision=8, holdings=10 ** 15):
    """Create a mock LedgerClient that settles every transfer."""
    ledger = Mock()
    ledger.validate_address = Mock(side_effect=is_base58_address)
    ledger.get_asset_precision = AsyncMock(return_value=precision)
    ledger.get_account_holdings = AsyncMock(return_value=holdings)
    ledger.resolve_payer_account = AsyncMock(
        side_effect=lambda identity, asset: HoldingAccount(identity.address, asset, identity.address)
    )
    ledger.resolve_or_create_holding_account = AsyncMock(
        side_effect=lambda owner, asset: HoldingAccount(owner, asset, owner)
    )
    ledger.submit_transfer = AsyncMock(return_value="txid_abc")
    return ledger


@pytest.fixture
def ledger():
    return create_mock_ledger()


@pytest.fixture
def run(ledger):
    """Invoke the CLI with the service wired to the mock ledger."""
    real_build = service_module.build_service

    def invoke(args, env=None):
        runner = CliRunner()
        with patch("rewardpayout.cli.configure_logging"), patch(
            "rewardpayout.cli.build_service",
            side_effect=lambda config: real_build(config, ledger=ledger, audit=Mock()),
        ):
            return runner.invoke(main, args, env={**BASE_ENV, **(env or {})})

    return invoke


class TestPay:
    """Tests for `rewardpayout pay`."""

    def test_pay(self, run, ledger):
        result = run(["pay", VALID1, "5"])

        assert result.exit_code == 0, result.output
        assert '"transaction": "txid_abc"' in result.output
        assert ledger.submit_transfer.await_args.args[3] == 500_000_000

    def test_pay_invalid_address(self, run, ledger):
        result = run(["pay", "bad", "5"])

        assert result.exit_code == 1
        assert "Invalid recipient address" in result.output
        ledger.submit_transfer.assert_not_awaited()

    def test_dry_run(self, run, ledger):
        result = run(["--dry-run", "pay", VALID1, "5"])

        assert result.exit_code == 0, result.output
        assert "dry_run_1" in result.output
        ledger.submit_transfer.assert_not_awaited()

    def test_missing_payer(self, run):
        result = run(["pay", VALID1, "5"], env={"PAYOUT_PAYER_ADDRESS": ""})

        assert result.exit_code == 1
        assert "PAYOUT_PAYER_ADDRESS is required" in result.output

    def test_bad_config(self, run):
        result = run(["pay", VALID1, "5"], env={"PAYOUT_UNIT_MODE": "wei"})

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestPayBatch:
    """Tests for `rewardpayout pay-batch`."""

    def _write(self, tmp_path, entries):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps(entries))
        return str(path)

    def test_all_successful(self, run, tmp_path):
        path = self._write(tmp_path, [
            {"address": VALID1, "amount": 5},
            {"address": VALID2, "amount": 1},
        ])

        result = run(["pay-batch", path])

        assert result.exit_code == 0, result.output
        assert '"successful": 2' in result.output

    def test_partial_failure_exits_nonzero(self, run, ledger, tmp_path):
        path = self._write(tmp_path, [
            {"address": VALID1, "amount": 5},
            {"address": "bad", "amount": 3},
            {"address": VALID2, "amount": 1},
        ])

        result = run(["pay-batch", path])

        assert result.exit_code == 1
        assert "2 successful, 1 failed" in result.output
        assert ledger.submit_transfer.await_count == 2

    def test_oversized(self, run, ledger, tmp_path):
        path = self._write(tmp_path, [{"address": VALID1, "amount": 1}] * 101)

        result = run(["pay-batch", path])

        assert result.exit_code == 1
        assert "between 1 and 100" in result.output
        ledger.submit_transfer.assert_not_awaited()

    def test_malformed_file(self, run, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("{oops")

        result = run(["pay-batch", str(path)])

        assert result.exit_code == 1
        assert "Invalid batch file" in result.output


class TestQueries:
    """Tests for the read-only commands."""

    def test_balance(self, run):
        result = run(["balance"])

        assert result.exit_code == 0, result.output
        assert f'"payer": "{PAYER}"' in result.output

    def test_balance_unavailable(self, run, ledger):
        ledger.get_account_holdings.side_effect = RuntimeError("node down")

        result = run(["balance"])

        assert result.exit_code == 1
        assert "Balance unavailable" in result.output

    def test_check_decimals(self, run, ledger):
        ledger.get_asset_precision.return_value = 6

        result = run(["check-decimals"], env={"PAYOUT_ASSET": "SATORI"})

        assert result.exit_code == 0, result.output
        assert '"precision": 6' in result.output
        assert '"minimal_units": 100000000' in result.output
        ledger.get_asset_precision.assert_awaited_with("SATORI")

    def test_check_env(self):
        result = CliRunner().invoke(main, ["check-env"], env=BASE_ENV)

        assert result.exit_code == 0
        assert "PAYOUT_PAYER_ADDRESS: set" in result.output

    def test_check_env_missing(self):
        result = CliRunner().invoke(
            main, ["check-env"], env={"PAYOUT_PAYER_ADDRESS": "", "PAYOUT_RPC_URL": ""}
        )

        assert result.exit_code == 1
        assert "PAYOUT_RPC_URL: missing" in result.output


class TestServe:
    """Tests for `rewardpayout serve`."""

    def test_serve_uses_overrides(self, run):
        with patch("rewardpayout.cli.PayoutAPI") as api_cls:
            api_cls.return_value.start = AsyncMock()
            result = run(["serve", "--port", "8080"])

        assert result.exit_code == 0, result.output
        assert api_cls.call_args.kwargs["port"] == 8080
        assert api_cls.call_args.kwargs["host"] == "127.0.0.1"
        api_cls.return_value.start.assert_awaited_once()
