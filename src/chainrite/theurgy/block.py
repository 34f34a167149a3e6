"""
Theurgy Block - Query block details.

Shows the latest block number, then the requested block (latest when no
number is given) with its first transaction, if any.
"""

from __future__ import annotations

import click

from ..errors import ChainriteError
from ._context import RuntimeContext, fail


@click.command()
@click.option(
    "--number",
    "-n",
    default=0,
    type=int,
    help="Block number to query (0 or omitted: latest)",
)
@click.pass_obj
def block(rt: RuntimeContext, number: int) -> None:
    """Show block details."""
    client = rt.get_client()

    try:
        latest = client.block_number()
        click.echo(f"  Latest block:   {latest}")
        if number <= 0:
            click.echo("  Querying:       latest block")
        else:
            click.echo(f"  Querying:       block #{number}")
        blk = client.get_block(number if number > 0 else None)
    except ChainriteError as exc:
        fail(exc)

    click.echo("")
    click.echo("  Block")
    click.echo("  ─────────────────────────────")
    click.echo(f"  Number:         {blk.number}")
    click.echo(f"  Hash:           {blk.hash}")
    click.echo(f"  Parent hash:    {blk.parent_hash}")
    click.echo(f"  Timestamp:      {blk.timestamp}")
    click.echo(f"  Transactions:   {blk.transaction_count}")
    click.echo(f"  Gas used:       {blk.gas_used}")
    click.echo(f"  Gas limit:      {blk.gas_limit}")
    click.echo(f"  Miner:          {blk.miner}")

    if blk.transactions:
        tx = blk.transactions[0]
        click.echo("")
        click.echo("  First transaction")
        click.echo("  ─────────────────────────────")
        click.echo(f"  Hash:           {tx.hash}")
        click.echo(f"  Gas price:      {tx.gas_price}")
        click.echo(f"  Gas limit:      {tx.gas}")
        click.echo(f"  Value:          {tx.value} wei")
