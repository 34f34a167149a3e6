from __future__ import annotations

from typing import Optional

import click

from ..errors import ChainriteError
from ..utils import checksum, wei_to_eth
from ._context import RuntimeContext, fail


@click.command()
@click.argument("address", required=False)
@click.pass_obj
def balance(rt: RuntimeContext, address: Optional[str]) -> None:
    """Show the balance of ADDRESS (default: your wallet)."""
    try:
        address = checksum(address) if address else rt.get_signer().address
        wei = rt.get_client().get_balance(address)
    except ChainriteError as exc:
        fail(exc)

    click.echo(f"  Address: {address}")
    click.echo(f"  Balance: {wei} wei (~{wei_to_eth(wei)} ETH)")
