"""
Theurgy Counter - Deploy and drive the Counter example contract.

Subcommands:
- deploy:    Deploy Counter with an initial value and wait for the receipt
- get:       Read getCount()
- increment: Send increment()
- set:       Send setCount(value)
- demo:      deploy -> get -> increment -> get -> setCount -> get
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from ..errors import ChainriteError
from ..pneuma.abi import load_bytecode
from ..pneuma.contract import ContractInvoker
from ..pneuma.rpc import BlockId, Receipt
from ._context import RuntimeContext, fail

bytecode_option = click.option(
    "--bytecode-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Artifact JSON or hex file (default: contracts/out/Counter.sol/Counter.json)",
)
address_option = click.option("--address", required=True, help="Counter contract address")


def _load_counter_bytecode(path: Optional[Path]) -> bytes:
    try:
        return load_bytecode("Counter", path)
    except (FileNotFoundError, ValueError) as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)


def _report(label: str, receipt: Receipt) -> None:
    if receipt.succeeded:
        click.secho(f"  {label} mined in block {receipt.block_number}", fg="green")
    else:
        click.secho(f"FAILED: {label} reverted in block {receipt.block_number}", fg="red")
        sys.exit(1)


def _read_count(invoker: ContractInvoker, address: str, block: BlockId = "latest") -> int:
    return invoker.call(address, "getCount", block=block)


def _deploy(invoker: ContractInvoker, bytecode: bytes, initial: int) -> tuple[str, Receipt]:
    address, signed = invoker.deploy(bytecode, [initial])
    click.echo(f"  Deploy TX:  {signed.hash}")
    click.echo(f"  Address:    {address}")
    click.echo("  Waiting for deployment to be mined...")
    receipt = invoker.submitter.confirm(signed.hash)
    _report("Deployment", receipt)
    return address, receipt


@click.group()
def counter() -> None:
    """Deploy and use the Counter contract."""


@counter.command("deploy")
@click.option("--initial", default=100, type=int, help="Initial counter value")
@bytecode_option
@click.pass_obj
def deploy(rt: RuntimeContext, initial: int, bytecode_file: Optional[Path]) -> None:
    """Deploy a new Counter."""
    bytecode = _load_counter_bytecode(bytecode_file)
    try:
        invoker = rt.invoker()
        click.echo(f"  Deployer:   {invoker.address}")
        _deploy(invoker, bytecode, initial)
    except ChainriteError as exc:
        fail(exc)


@counter.command("get")
@address_option
@click.pass_obj
def get(rt: RuntimeContext, address: str) -> None:
    """Read the current count."""
    try:
        value = _read_count(rt.invoker(with_signer=False), address)
    except ChainriteError as exc:
        fail(exc)
    click.echo(f"  Count: {value}")


@counter.command("increment")
@address_option
@click.pass_obj
def increment(rt: RuntimeContext, address: str) -> None:
    """Add one to the count."""
    try:
        invoker = rt.invoker()
        receipt = invoker.send(address, "increment")
        _report("increment", receipt)
        click.echo(f"  Count: {_read_count(invoker, address, receipt.block_number)}")
    except ChainriteError as exc:
        fail(exc)


@counter.command("set")
@address_option
@click.option("--value", required=True, type=int, help="New count")
@click.pass_obj
def set_count(rt: RuntimeContext, address: str, value: int) -> None:
    """Overwrite the count."""
    try:
        invoker = rt.invoker()
        receipt = invoker.send(address, "setCount", [value])
        _report("setCount", receipt)
        click.echo(f"  Count: {_read_count(invoker, address, receipt.block_number)}")
    except ChainriteError as exc:
        fail(exc)


@counter.command("demo")
@click.option("--initial", default=100, type=int, help="Initial counter value")
@click.option("--set-to", default=999, type=int, help="Value for setCount")
@bytecode_option
@click.pass_obj
def demo(rt: RuntimeContext, initial: int, set_to: int, bytecode_file: Optional[Path]) -> None:
    """Run the full deploy / read / write sequence."""
    bytecode = _load_counter_bytecode(bytecode_file)
    try:
        invoker = rt.invoker()
        click.echo(f"  Wallet:     {invoker.address}")
        click.echo(f"  Chain ID:   {invoker.client.chain_id()}")

        click.echo("")
        click.echo("=== Deploy ===")
        address, receipt = _deploy(invoker, bytecode, initial)

        click.echo("")
        click.echo("=== getCount ===")
        click.echo(f"  Count: {_read_count(invoker, address, receipt.block_number)}")

        click.echo("")
        click.echo("=== increment ===")
        receipt = invoker.send(address, "increment")
        _report("increment", receipt)
        click.echo(f"  Count: {_read_count(invoker, address, receipt.block_number)}")

        click.echo("")
        click.echo("=== setCount ===")
        receipt = invoker.send(address, "setCount", [set_to])
        _report("setCount", receipt)
        click.echo(f"  Count: {_read_count(invoker, address, receipt.block_number)}")
    except ChainriteError as exc:
        fail(exc)

    click.echo("")
    click.echo("=== Demo Complete ===")
