"""
Contract Invoker - deploy contracts, read them, and send calls to them.

Read-only calls go straight to eth_call. Deployments and state-changing
calls go through the TransactionBuilder -> signer -> Submitter pipeline of
``TransactionSender``.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Optional, Sequence

import rlp
from eth_hash.auto import keccak
from eth_utils import to_canonical_address, to_checksum_address
from loguru import logger

from ..errors import ConfigError
from ..utils import checksum
from .abi import decode_result, encode_call, encode_constructor
from .confirm import Submitter
from .rpc import BlockId, Receipt
from .sender import TransactionSender
from .tx import SignedTransaction, TransactionBuilder

if TYPE_CHECKING:
    from ..sigil.eth import LocalSigner
    from .rpc import ChainClient


def contract_address_for(sender: str, nonce: int) -> str:
    """Address a CREATE from ``sender`` at ``nonce`` deploys to."""
    encoded = rlp.encode([to_canonical_address(sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


class ContractInvoker(TransactionSender):
    def __init__(
        self,
        client: "ChainClient",
        signer: Optional["LocalSigner"] = None,
        abi: Optional[Sequence[dict]] = None,
        builder: Optional[TransactionBuilder] = None,
        submitter: Optional[Submitter] = None,
    ) -> None:
        super().__init__(client, signer, builder=builder, submitter=submitter)
        self.abi = list(abi) if abi is not None else None

    def _abi(self, abi: Optional[Sequence[dict]]) -> Sequence[dict]:
        abi = abi if abi is not None else self.abi
        if abi is None:
            raise ConfigError("No ABI given for contract interaction")
        return abi

    def deploy(
        self,
        bytecode: bytes,
        constructor_args: Sequence[Any] = (),
        abi: Optional[Sequence[dict]] = None,
        gas_limit: Optional[int] = None,
    ) -> tuple[str, SignedTransaction]:
        """
        Deploy a contract.

        Args:
            bytecode: Creation bytecode
            constructor_args: Constructor arguments, ABI-encoded and appended
            abi: Contract ABI (defaults to the invoker's)
            gas_limit: Explicit gas limit (default: estimate with margin)

        Returns:
            (contract address, signed creation transaction). The transaction
            is submitted but not yet confirmed; pass ``signed.hash`` to
            ``submitter.confirm``.
        """
        init_code = encode_constructor(bytecode, self._abi(abi), constructor_args)
        attempt = self.broadcast(
            lambda sender: self.builder.build_deployment(sender, init_code, gas_limit=gas_limit)
        )
        address = contract_address_for(attempt.signed.sender, attempt.signed.nonce)
        logger.info("Deploying contract at {} (tx {})", address, attempt.tx_hash)
        return address, attempt.signed

    def call(
        self,
        contract_address: str,
        function_name: str,
        args: Sequence[Any] = (),
        abi: Optional[Sequence[dict]] = None,
        block: BlockId = "latest",
    ) -> Any:
        """
        Read-only call; no transaction is created.

        Pass a receipt's block number as ``block`` to read the state as of
        that transaction.
        """
        abi = self._abi(abi)
        data = encode_call(abi, function_name, args)
        raw = self.client.call(checksum(contract_address), data, block=block)
        return decode_result(abi, function_name, raw)

    def send(
        self,
        contract_address: str,
        function_name: str,
        args: Sequence[Any] = (),
        abi: Optional[Sequence[dict]] = None,
        value: int = 0,
        gas_limit: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        """
        State-changing call, waited on until mined.

        Returns:
            The receipt; a reverted call has ``receipt.succeeded == False``

        Raises:
            EncodingError: If args do not match the function signature
            EstimationError: If gas estimation fails
            ConfirmationTimeoutError: If the receipt does not appear in time
        """
        data = encode_call(self._abi(abi), function_name, args)
        attempt = self.broadcast(
            lambda sender: self.builder.build_contract_call(
                sender, contract_address, data, value=value, gas_limit=gas_limit
            )
        )
        logger.info("{}({}) sent: {}", function_name, ", ".join(map(str, args)), attempt.tx_hash)
        receipt = self.submitter.confirm(attempt.tx_hash, timeout=timeout, cancel=cancel)
        attempt.mark_confirmed(receipt)
        return receipt
