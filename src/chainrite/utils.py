from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Union

from eth_utils import is_address, to_checksum_address

from .errors import EncodingError

WEI_PER_ETHER = 10**18


def wei_to_eth(wei: int, places: int = 6) -> str:
    value = Decimal(wei) / Decimal(WEI_PER_ETHER)
    return f"{value:.{places}f}"


def eth_to_wei(amount: Union[str, int, Decimal]) -> int:
    try:
        value = Decimal(str(amount)) * WEI_PER_ETHER
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Amount must be a finite number: {amount!r}")
    if value != value.to_integral_value():
        raise ValueError(f"Amount has more precision than 1 wei: {amount!r}")
    return int(value)


def to_int(value: Any) -> int:
    """Parse a JSON-RPC quantity (0x-hex string or plain int)."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        return int(value, 16) if len(value) > 2 else 0
    return int(value)


def to_hex(value: int) -> str:
    return hex(value)


def hex_to_bytes(value: str) -> bytes:
    stripped = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(stripped)


def bytes_to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def checksum(address: str) -> str:
    """Return the EIP-55 form of ``address``."""
    if not isinstance(address, str) or not is_address(address):
        raise EncodingError(f"Invalid address: {address!r}")
    return to_checksum_address(address)
