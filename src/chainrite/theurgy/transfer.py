"""
Theurgy Transfer - Send native currency.

Builds the transfer from live chain state (pending nonce, suggested gas
price, fixed 21000 gas), checks the balance covers value plus worst-case gas,
signs for the node's chain id, submits, and waits for the receipt.
"""

from __future__ import annotations

import sys
from typing import Optional

import click

from ..errors import ChainriteError
from ..pneuma.confirm import TxState
from ..utils import checksum, eth_to_wei, wei_to_eth
from ._context import RuntimeContext, fail

DEFAULT_VALUE_WEI = 10**15  # 0.001 ETH


@click.command()
@click.option(
    "--to",
    "recipient",
    envvar="CHAINRITE_RECIPIENT",
    required=True,
    help="Recipient address",
)
@click.option("--value", "value_wei", default=DEFAULT_VALUE_WEI, type=int, help="Amount in wei")
@click.option("--ether", "value_eth", default=None, help="Amount in ETH (overrides --value)")
@click.option("--wait/--no-wait", default=True, help="Wait for the receipt")
@click.option("--timeout", default=None, type=float, help="Seconds to wait for the receipt")
@click.pass_obj
def transfer(
    rt: RuntimeContext,
    recipient: str,
    value_wei: int,
    value_eth: Optional[str],
    wait: bool,
    timeout: Optional[float],
) -> None:
    """Send ETH from your wallet."""
    if value_eth is not None:
        try:
            value_wei = eth_to_wei(value_eth)
        except ValueError as exc:
            click.secho(f"ERROR: Invalid --ether: {exc}", fg="red")
            sys.exit(1)
    if value_wei <= 0:
        click.secho("ERROR: Amount must be positive", fg="red")
        sys.exit(1)

    try:
        recipient = checksum(recipient)
        sender = rt.invoker()
        client = rt.get_client()

        address = sender.address
        wei = client.get_balance(address)
        click.echo(f"  Sender:    {address}")
        click.echo(f"  Balance:   {wei} wei (~{wei_to_eth(wei)} ETH)")
        click.echo(f"  Chain ID:  {client.chain_id()}")

        attempt = sender.transfer(recipient, value_wei, wait=False)
    except ChainriteError as exc:
        fail(exc)

    tx = attempt.unsigned
    click.echo(f"  Nonce:     {tx.nonce}")
    click.echo(f"  Gas price: {tx.gas_price} wei")
    click.echo(f"  Gas limit: {tx.gas_limit}")
    click.echo("")
    click.echo(f"  TX:        {attempt.tx_hash}")
    click.echo(f"  Amount:    {wei_to_eth(value_wei)} ETH")
    click.echo(f"  Recipient: {recipient}")

    if not wait:
        return

    click.echo("")
    click.echo("  Waiting for confirmation...")
    try:
        attempt = sender.wait(attempt, timeout=timeout)
    except ChainriteError as exc:
        fail(exc)

    if attempt.state is TxState.TIMED_OUT:
        click.secho(f"PENDING: {attempt.error}", fg="yellow")
        click.echo("  The transaction may still be mined; check it again later.")
        sys.exit(attempt.error.exit_code)

    receipt = attempt.receipt
    if receipt.succeeded:
        click.secho(f"SUCCESS: Mined in block {receipt.block_number}", fg="green")
        click.echo(f"  Gas used:  {receipt.gas_used}")
    else:
        click.secho(f"FAILED: Transaction reverted in block {receipt.block_number}", fg="red")
        sys.exit(1)
