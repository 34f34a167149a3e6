"""
Submitter - broadcast signed transactions and wait for them to be mined.

Lifecycle of one attempt:

    BUILT -> SIGNED -> SUBMITTED -> CONFIRMED
                                 -> TIMED_OUT

There is no way back. Replacing a stuck transaction means building a new
attempt with the same nonce and a higher gas price (``tx.bump_gas_price``).
A reverted transaction still reaches CONFIRMED; check ``receipt.succeeded``.
"""

from __future__ import annotations

import enum
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from loguru import logger

from ..errors import (
    ConfirmationTimeoutError,
    InvalidStateTransitionError,
    NotFoundError,
    RpcError,
    TransportError,
)
from .rpc import Receipt
from .tx import SignedTransaction, UnsignedTransaction

if TYPE_CHECKING:
    from .rpc import ChainClient

_MAX_BACKOFF = 8.0
_ALREADY_KNOWN = ("already known", "known transaction", "already imported")


class TxState(str, enum.Enum):
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"


_TRANSITIONS = {
    TxState.BUILT: {TxState.SIGNED},
    TxState.SIGNED: {TxState.SUBMITTED},
    TxState.SUBMITTED: {TxState.CONFIRMED, TxState.TIMED_OUT},
    TxState.CONFIRMED: set(),
    TxState.TIMED_OUT: set(),
}


@dataclass
class TransactionAttempt:
    unsigned: UnsignedTransaction
    state: TxState = TxState.BUILT
    signed: Optional[SignedTransaction] = None
    tx_hash: Optional[str] = None
    receipt: Optional[Receipt] = None
    error: Optional[Exception] = None

    def _advance(self, new_state: TxState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(
                f"Cannot move from {self.state.value} to {new_state.value}",
                nonce=self.unsigned.nonce,
                tx_hash=self.tx_hash,
            )
        logger.debug("Tx nonce={} {} -> {}", self.unsigned.nonce, self.state.value, new_state.value)
        self.state = new_state

    def mark_signed(self, signed: SignedTransaction) -> None:
        if signed.unsigned != self.unsigned:
            raise InvalidStateTransitionError("Signed transaction does not match this attempt")
        self._advance(TxState.SIGNED)
        self.signed = signed

    def mark_submitted(self, tx_hash: str) -> None:
        self._advance(TxState.SUBMITTED)
        self.tx_hash = tx_hash

    def mark_confirmed(self, receipt: Receipt) -> None:
        self._advance(TxState.CONFIRMED)
        self.receipt = receipt

    def mark_timed_out(self, error: Exception) -> None:
        self._advance(TxState.TIMED_OUT)
        self.error = error

    @property
    def done(self) -> bool:
        return self.state in (TxState.CONFIRMED, TxState.TIMED_OUT)


def _is_already_known(exc: RpcError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _ALREADY_KNOWN)


class Submitter:
    def __init__(
        self,
        client: "ChainClient",
        retries: int = 3,
        backoff: float = 0.5,
        poll_interval: float = 2.0,
        timeout: float = 120.0,
    ) -> None:
        self.client = client
        self.retries = max(1, retries)
        self.backoff = backoff
        self.poll_interval = poll_interval
        self.timeout = timeout

    def _node_has(self, signed: SignedTransaction) -> bool:
        """True if the node knows ``signed`` as pending or mined."""
        if self.client.get_receipt(signed.hash) is not None:
            return True
        try:
            self.client.get_transaction(signed.hash)
        except NotFoundError:
            return False
        return True

    def submit(self, signed: SignedTransaction) -> str:
        """
        Broadcast ``signed``, retrying the identical bytes on transport errors.

        Each attempt is a single POST, so at most ``retries`` requests are
        made. When a rebroadcast follows a lost response and the node rejects
        it (e.g. "nonce too low" because the first copy was mined), the node
        is asked for the hash before the rejection is reported.

        Returns:
            Transaction hash

        Raises:
            TransportError: If every attempt failed to reach the node
            RpcError: If the node rejected the transaction
        """
        lost_response = False
        for attempt in range(1, self.retries + 1):
            try:
                return self.client.submit(signed)
            except TransportError as exc:
                if attempt == self.retries:
                    raise TransportError(
                        f"Broadcast failed after {attempt} attempts",
                        sender=signed.sender,
                        nonce=signed.nonce,
                        tx_hash=signed.hash,
                    ) from exc
                lost_response = True
                wait = min(self.backoff * (2 ** (attempt - 1)), _MAX_BACKOFF)
                logger.warning(
                    "Broadcast of {} failed (attempt {}/{}), retrying in {:.2f}s: {}",
                    signed.hash, attempt, self.retries, wait, exc,
                )
                time.sleep(wait)
            except RpcError as exc:
                if _is_already_known(exc):
                    logger.info("Node already has {}", signed.hash)
                    return signed.hash
                if lost_response and self._node_has(signed):
                    logger.info("Earlier broadcast of {} reached the node ({})", signed.hash, exc.rpc_message)
                    return signed.hash
                raise RpcError(
                    exc.code, exc.rpc_message, exc.data,
                    sender=signed.sender, nonce=signed.nonce, tx_hash=signed.hash,
                ) from exc
        raise AssertionError("unreachable")

    def confirm(
        self,
        tx_hash: str,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        """
        Wait until ``tx_hash`` is mined.

        Raises:
            ConfirmationTimeoutError: No receipt within timeout; the outcome is unknown
            ConfirmationCancelledError: ``cancel`` was set
        """
        timeout = self.timeout if timeout is None else timeout
        logger.info("Waiting for {} (timeout {}s)", tx_hash, timeout)
        receipt = self.client.wait_for_receipt(
            tx_hash, poll_interval=self.poll_interval, timeout=timeout, cancel=cancel
        )
        if receipt.succeeded:
            logger.info("Mined {} in block {}", tx_hash, receipt.block_number)
        else:
            logger.warning("Mined {} in block {} but reverted", tx_hash, receipt.block_number)
        return receipt

    def submit_and_confirm(
        self,
        signed: SignedTransaction,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        tx_hash = self.submit(signed)
        return self.confirm(tx_hash, timeout=timeout, cancel=cancel)

    def run(
        self,
        attempt: TransactionAttempt,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TransactionAttempt:
        """
        Drive a signed attempt to CONFIRMED or TIMED_OUT.

        A timeout is recorded on the attempt rather than raised. Transport and
        node errors still propagate, leaving the attempt in its last state.
        """
        if attempt.state is not TxState.SIGNED or attempt.signed is None:
            raise InvalidStateTransitionError(
                f"Attempt must be signed before submission (state: {attempt.state.value})",
                nonce=attempt.unsigned.nonce,
            )
        attempt.mark_submitted(self.submit(attempt.signed))
        return self.await_attempt(attempt, timeout=timeout, cancel=cancel)

    def await_attempt(
        self,
        attempt: TransactionAttempt,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TransactionAttempt:
        """Wait for a SUBMITTED attempt; a timeout is recorded, not raised."""
        try:
            receipt = self.confirm(attempt.tx_hash, timeout=timeout, cancel=cancel)
        except ConfirmationTimeoutError as exc:
            attempt.mark_timed_out(exc)
            logger.warning("Gave up waiting for {}; it may still be mined", attempt.tx_hash)
            return attempt
        attempt.mark_confirmed(receipt)
        return attempt
