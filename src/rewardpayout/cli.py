"""
rewardpayout/cli.py

Command line entry point.

    rewardpayout serve
    rewardpayout pay EADDR... 5
    rewardpayout pay-batch payouts.json
    rewardpayout balance
    rewardpayout check-decimals
    rewardpayout check-env

Settings come from PAYOUT_* environment variables (see config.py).
"""

import json
import logging

import click
import trio

from .api import PayoutAPI
from .config import PayoutConfig, check_env
from .errors import BatchSizeError, ConfigError
from .logs import configure_logging
from .payout.models import PayoutRequest
from .payout.units import UnitMode, to_minimal_units
from .service import build_service

logger = logging.getLogger("rewardpayout.cli")

SAMPLE_AMOUNT = 100


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _load_config(ctx: click.Context) -> PayoutConfig:
    try:
        config = PayoutConfig.from_env()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(1)
    if ctx.obj.get("dry_run"):
        config.dry_run = True
    configure_logging(
        ctx.obj.get("log_level") or config.log_level,
        config.log_dir if config.file_logging else None,
    )
    return config


def _build(ctx: click.Context, config: PayoutConfig):
    try:
        return build_service(config)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(1)


@click.group()
@click.option("--log-level", default=None, help="Override PAYOUT_LOG_LEVEL")
@click.option("--dry-run", is_flag=True, default=False, help="Validate everything but submit nothing")
@click.pass_context
def main(ctx, log_level, dry_run):
    """Custodial reward payout engine."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["dry_run"] = dry_run


@main.command()
@click.option("--host", default=None, help="Override PAYOUT_HOST")
@click.option("--port", type=int, default=None, help="Override PAYOUT_PORT")
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API."""
    config = _load_config(ctx)
    service = _build(ctx, config)
    api = PayoutAPI(service, host=host or config.host, port=port or config.port)
    try:
        trio.run(api.start)
    except KeyboardInterrupt:
        logger.info("Shutting down")


@main.command()
@click.argument("address")
@click.argument("amount")
@click.option("--precision", type=int, default=None, help="Asset precision override")
@click.pass_context
def pay(ctx, address, amount, precision):
    """Pay AMOUNT to ADDRESS."""
    config = _load_config(ctx)
    service = _build(ctx, config)

    request = PayoutRequest(address, amount, asset_precision=precision)
    outcome = trio.run(service.single.attempt, request)

    _echo_json(outcome.to_dict())
    if not outcome.success:
        ctx.exit(1)


@main.command("pay-batch")
@click.argument("file", type=click.File("r"))
@click.pass_context
def pay_batch(ctx, file):
    """Run a JSON batch file: [{"address": ..., "amount": ...}, ...]."""
    try:
        entries = json.load(file)
        if not isinstance(entries, list):
            raise ValueError("Batch file must contain a JSON array")
        requests = [PayoutRequest.from_dict(entry) for entry in entries]
    except ValueError as e:
        click.echo(f"Invalid batch file: {e}", err=True)
        ctx.exit(1)

    config = _load_config(ctx)
    service = _build(ctx, config)

    try:
        result = trio.run(service.batch.execute_batch, requests)
    except BatchSizeError as e:
        click.echo(str(e), err=True)
        ctx.exit(1)

    _echo_json(result.to_dict())
    click.echo(result.summary, err=True)
    if result.failure_count:
        ctx.exit(1)


@main.command()
@click.pass_context
def balance(ctx):
    """Show the payer's holdings."""
    config = _load_config(ctx)
    service = _build(ctx, config)
    try:
        data = trio.run(service.get_balance)
    except Exception as e:
        click.echo(f"Balance unavailable: {e}", err=True)
        ctx.exit(1)
    _echo_json(data)


@main.command("check-decimals")
@click.pass_context
def check_decimals(ctx):
    """Show the asset precision and a sample conversion."""
    config = _load_config(ctx)
    service = _build(ctx, config)
    try:
        precision = trio.run(service.ledger.get_asset_precision, config.asset)
    except Exception as e:
        click.echo(f"Could not read precision: {e}", err=True)
        ctx.exit(1)

    if config.unit_mode is UnitMode.ALREADY_MINIMAL:
        sample = SAMPLE_AMOUNT
    else:
        sample = to_minimal_units(SAMPLE_AMOUNT, precision)

    _echo_json({
        "asset": config.asset or "EVR",
        "precision": precision,
        "unit_mode": str(config.unit_mode),
        "sample": {"amount": SAMPLE_AMOUNT, "minimal_units": sample},
    })


@main.command("check-env")
@click.pass_context
def check_env_command(ctx):
    """Report which settings are present (values are never printed)."""
    report = check_env()
    for section, names in report.items():
        click.echo(f"{section}:")
        for name, present in names.items():
            click.echo(f"  {name}: {'set' if present else 'missing'}")
    if not all(report["required"].values()):
        ctx.exit(1)


if __name__ == "__main__":
    main()
