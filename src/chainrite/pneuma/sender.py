"""
Transaction Sender - build, sign and submit on behalf of one account.

Holds the per-address write lock for the whole build -> sign -> submit
sequence so that concurrent callers sharing a ``NonceAllocator`` never sign
two transactions with the same nonce.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Callable, Optional

from loguru import logger

from ..errors import ConfigError, RpcError
from .confirm import Submitter, TransactionAttempt
from .tx import SignedTransaction, TransactionBuilder, UnsignedTransaction

if TYPE_CHECKING:
    from ..sigil.eth import LocalSigner
    from .rpc import ChainClient


class TransactionSender:
    def __init__(
        self,
        client: "ChainClient",
        signer: Optional["LocalSigner"] = None,
        builder: Optional[TransactionBuilder] = None,
        submitter: Optional[Submitter] = None,
    ) -> None:
        self.client = client
        self.signer = signer
        self.builder = builder or TransactionBuilder(client)
        self.submitter = submitter or Submitter(client)

    @property
    def address(self) -> str:
        return self._require_signer().address

    def _require_signer(self) -> "LocalSigner":
        if self.signer is None:
            raise ConfigError("A signer is required for state-changing operations")
        return self.signer

    def sign(self, tx: UnsignedTransaction) -> SignedTransaction:
        return self._require_signer().sign(tx, self.client.chain_id())

    def broadcast(self, build: Callable[[str], UnsignedTransaction]) -> TransactionAttempt:
        """
        Build with ``build(sender)``, sign and submit under the sender's lock.

        The nonce is handed back when the transaction provably never reached
        the node (signing failed or the node rejected it).

        Returns:
            The attempt in SUBMITTED state
        """
        signer = self._require_signer()
        nonces = self.builder.nonces
        with nonces.lock(signer.address):
            unsigned = build(signer.address)
            attempt = TransactionAttempt(unsigned)
            try:
                attempt.mark_signed(self.sign(unsigned))
                tx_hash = self.submitter.submit(attempt.signed)
            except RpcError:
                nonces.release(signer.address, unsigned.nonce)
                raise
            except Exception:
                if attempt.signed is None:
                    nonces.release(signer.address, unsigned.nonce)
                raise
            attempt.mark_submitted(tx_hash)
        return attempt

    def wait(
        self,
        attempt: TransactionAttempt,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TransactionAttempt:
        """
        Wait for a submitted attempt. Timeouts are recorded on the attempt.

        Cancellation propagates as ``ConfirmationCancelledError``; the
        transaction itself is unaffected.
        """
        return self.submitter.await_attempt(attempt, timeout=timeout, cancel=cancel)

    def transfer(
        self,
        to: str,
        value: int,
        wait: bool = True,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TransactionAttempt:
        """
        Send ``value`` wei to ``to``.

        Returns:
            The attempt: SUBMITTED when wait is False, otherwise CONFIRMED or
            TIMED_OUT
        """
        attempt = self.broadcast(lambda sender: self.builder.build_transfer(sender, to, value))
        logger.info("Transfer {} wei to {}: {}", value, to, attempt.tx_hash)
        if not wait:
            return attempt
        return self.wait(attempt, timeout=timeout, cancel=cancel)
