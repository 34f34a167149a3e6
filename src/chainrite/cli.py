"""
chainrite CLI

Command-line interface for the Ethereum transaction lifecycle: build from
chain state, sign, submit, confirm.

Configuration comes from the environment (or ~/.chainrite/.env):
ETH_RPC_URL, PRIVATE_KEY, CHAINRITE_RECIPIENT and the CHAINRITE_* tuning
variables. Keys are never accepted as command-line arguments.

Commands:
  block     - Show block details
  balance   - Show an account balance
  transfer  - Send ETH
  counter   - Deploy and use the Counter contract
  whoami    - Show current wallet address
  info      - Show configuration
"""

from __future__ import annotations

import dataclasses
import sys
from typing import Optional

import click
from loguru import logger

from .config import load_settings
from .errors import ChainriteError
from .sigil.eth import load_private_key, LocalSigner
from .theurgy._context import RuntimeContext


# ============ Constants ============

VERSION = "0.3.0"

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


# ============ Banner ============


def _print_banner() -> None:
    border = click.style("  ◆ ═══════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo(
        click.style("      C H A I N R I T E", fg="bright_white", bold=True)
        + click.style(f"   v{VERSION}", dim=True)
    )
    click.echo(border)
    click.echo()


def _configure_logging(verbose: bool) -> None:
    logger.enable("chainrite")
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if verbose else "INFO")


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="chainrite")
@click.option(
    "--rpc-url",
    envvar="ETH_RPC_URL",
    default=None,
    help="JSON-RPC endpoint (default: public Sepolia node)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, rpc_url: Optional[str], verbose: bool) -> None:
    """chainrite: build, sign, submit and confirm Ethereum transactions."""
    _configure_logging(verbose)

    if ctx.obj is None:
        try:
            settings = load_settings()
        except ChainriteError as exc:
            click.secho(f"ERROR: {exc}", fg="red")
            sys.exit(exc.exit_code)
        if rpc_url:
            settings = dataclasses.replace(settings, rpc_url=rpc_url)
        ctx.obj = RuntimeContext(settings=settings)
        ctx.call_on_close(ctx.obj.close)

    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.balance import balance
from .theurgy.block import block
from .theurgy.counter import counter
from .theurgy.transfer import transfer

cli.add_command(block)
cli.add_command(balance)
cli.add_command(transfer)
cli.add_command(counter)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        address = LocalSigner(load_private_key()).address
    except ChainriteError:
        click.echo("No wallet configured.")
        click.echo("Set PRIVATE_KEY in the environment or ~/.chainrite/.env.")
        sys.exit(1)
    click.echo(f"Address: {address}")


# ============ Info ============


@cli.command()
@click.pass_obj
def info(rt: RuntimeContext) -> None:
    """Show configuration."""
    _print_banner()
    settings = rt.settings

    click.secho("  Configuration ──────────────────────", fg="cyan")
    click.echo()

    try:
        address = LocalSigner(load_private_key()).address
        wallet = click.style(address, fg="bright_white")
    except ChainriteError:
        wallet = click.style("not configured", fg="yellow") + click.style(
            "  (set PRIVATE_KEY)", dim=True
        )

    rows = [
        ("Wallet:        ", wallet),
        ("RPC URL:       ", settings.rpc_url),
        ("Recipient:     ", settings.recipient or "-"),
        ("Poll interval: ", f"{settings.poll_interval}s"),
        ("Confirm wait:  ", f"{settings.confirm_timeout}s"),
        ("RPC retries:   ", str(settings.rpc_retries)),
        ("Gas margin:    ", f"x{settings.gas_margin}"),
    ]
    for label, value in rows:
        click.echo(click.style(f"  {label}", dim=True) + value)

    click.echo()


# ============ Entry Points ============


def main() -> None:
    """chainrite CLI entry point."""
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
