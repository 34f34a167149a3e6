"""
Transaction Builder - assemble unsigned transactions from chain state.

Plain transfers use a fixed 21000 gas limit. Contract calls and deployments
are estimated with eth_estimateGas and padded by a safety margin unless the
caller passes an explicit limit. Every build runs a pre-flight balance check.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from ..errors import InsufficientBalanceError, InvalidTransactionError
from ..utils import bytes_to_hex, checksum
from .nonce import NonceAllocator

if TYPE_CHECKING:
    from .rpc import ChainClient

TRANSFER_GAS = 21_000
TX_BASE_GAS = 21_000
CREATE_GAS = 32_000
ZERO_BYTE_GAS = 4
NONZERO_BYTE_GAS = 16
DEFAULT_GAS_MARGIN = 1.2


def intrinsic_gas(data: bytes = b"", create: bool = False) -> int:
    """Minimum gas a transaction with this payload can be included with."""
    zeros = data.count(0)
    gas = TX_BASE_GAS + zeros * ZERO_BYTE_GAS + (len(data) - zeros) * NONZERO_BYTE_GAS
    if create:
        gas += CREATE_GAS
    return gas


@dataclass(frozen=True)
class UnsignedTransaction:
    nonce: int
    to: Optional[str]
    value: int
    gas_limit: int
    gas_price: int
    data: bytes = b""

    def __post_init__(self) -> None:
        for name in ("nonce", "value", "gas_limit", "gas_price"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidTransactionError(f"{name} must be a non-negative integer, got {value!r}")
        required = intrinsic_gas(self.data, create=self.is_creation)
        if self.gas_limit < required:
            raise InvalidTransactionError(
                f"Gas limit {self.gas_limit} below intrinsic cost {required}",
                nonce=self.nonce,
            )

    @property
    def is_creation(self) -> bool:
        return self.to is None

    @property
    def max_cost(self) -> int:
        """Worst-case spend: gas_limit * gas_price + value."""
        return self.gas_limit * self.gas_price + self.value

    def as_dict(self, chain_id: int) -> dict[str, Any]:
        """Field dict in the shape eth-account signs (legacy, EIP-155)."""
        tx: dict[str, Any] = {
            "nonce": self.nonce,
            "value": self.value,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price,
            "data": bytes_to_hex(self.data),
            "chainId": chain_id,
        }
        if self.to is not None:
            tx["to"] = self.to
        return tx


@dataclass(frozen=True)
class SignedTransaction:
    unsigned: UnsignedTransaction
    chain_id: int
    raw: bytes = field(repr=False)
    hash: str
    sender: str
    v: int
    r: int
    s: int

    @property
    def nonce(self) -> int:
        return self.unsigned.nonce

    @property
    def raw_hex(self) -> str:
        return bytes_to_hex(self.raw)

    def recover_sender(self) -> str:
        from ..sigil.eth import recover_sender

        return recover_sender(self.raw)


def check_balance(client: "ChainClient", sender: str, tx: UnsignedTransaction) -> int:
    """
    Pre-flight: make sure ``sender`` can pay for ``tx`` in the worst case.

    Returns:
        The balance read from the chain

    Raises:
        InsufficientBalanceError: If gas_limit * gas_price + value > balance
    """
    balance = client.get_balance(sender)
    if tx.max_cost > balance:
        raise InsufficientBalanceError(sender, tx.max_cost, balance, nonce=tx.nonce)
    return balance


def bump_gas_price(tx: UnsignedTransaction, factor: float = 1.125) -> UnsignedTransaction:
    """
    Replacement-by-fee: same nonce, higher gas price.

    Nodes require at least a 10% bump to replace a pending transaction.
    """
    if factor <= 1:
        raise ValueError("factor must be greater than 1")
    new_price = max(int(tx.gas_price * factor), tx.gas_price + 1)
    return replace(tx, gas_price=new_price)


class TransactionBuilder:
    def __init__(
        self,
        client: "ChainClient",
        nonces: Optional[NonceAllocator] = None,
        gas_margin: float = DEFAULT_GAS_MARGIN,
    ) -> None:
        self.client = client
        self.nonces = nonces or NonceAllocator(client)
        self.gas_margin = gas_margin

    def build_transfer(self, sender: str, to: str, value: int) -> UnsignedTransaction:
        """
        Build a native currency transfer.

        Args:
            sender: Paying address
            to: Recipient address
            value: Amount in wei

        Raises:
            InsufficientBalanceError: If the sender cannot cover value plus gas
        """
        sender = checksum(sender)
        to = checksum(to)
        gas_price = self.client.get_gas_price()
        return self._finish(sender, to=to, value=value, gas_limit=TRANSFER_GAS, gas_price=gas_price)

    def build_contract_call(
        self,
        sender: str,
        contract_address: str,
        data: bytes,
        value: int = 0,
        gas_limit: Optional[int] = None,
    ) -> UnsignedTransaction:
        """
        Build a state-changing contract call.

        Raises:
            EstimationError: If gas_limit is None and estimation fails
            InsufficientBalanceError: If the sender cannot cover value plus gas
        """
        sender = checksum(sender)
        contract_address = checksum(contract_address)
        gas_price = self.client.get_gas_price()
        if gas_limit is None:
            gas_limit = self._estimate(sender, contract_address, data, value)
        return self._finish(
            sender, to=contract_address, value=value, gas_limit=gas_limit,
            gas_price=gas_price, data=data,
        )

    def build_deployment(
        self,
        sender: str,
        init_code: bytes,
        value: int = 0,
        gas_limit: Optional[int] = None,
    ) -> UnsignedTransaction:
        """Build a contract creation transaction (to=None)."""
        sender = checksum(sender)
        gas_price = self.client.get_gas_price()
        if gas_limit is None:
            gas_limit = self._estimate(sender, None, init_code, value)
        return self._finish(
            sender, to=None, value=value, gas_limit=gas_limit,
            gas_price=gas_price, data=init_code,
        )

    def _estimate(self, sender: str, to: Optional[str], data: bytes, value: int) -> int:
        estimate = self.client.estimate_gas(
            {"from": sender, "to": to, "data": bytes_to_hex(data), "value": value}
        )
        padded = int(estimate * self.gas_margin)
        logger.debug("Gas estimate {} -> limit {}", estimate, padded)
        return padded

    def _finish(self, sender: str, **fields: Any) -> UnsignedTransaction:
        nonce = self.nonces.allocate(sender)
        try:
            tx = UnsignedTransaction(nonce=nonce, **fields)
            check_balance(self.client, sender, tx)
        except Exception:
            self.nonces.release(sender, nonce)
            raise
        logger.info(
            "Built tx nonce={} to={} value={} gas={} gasPrice={}",
            tx.nonce, tx.to or "<create>", tx.value, tx.gas_limit, tx.gas_price,
        )
        return tx
