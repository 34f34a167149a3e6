"""
Error taxonomy for the transaction lifecycle.

Every error carries an ``exit_code`` for the CLI and an optional ``context``
mapping (address, nonce, tx hash, ...) so a failure can be diagnosed without
retrying it.
"""

from __future__ import annotations

from typing import Any, Optional


class ChainriteError(RuntimeError):
    exit_code: int = 1

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ConfigError(ChainriteError):
    exit_code = 2


class TransportError(ChainriteError):
    """Network or connection failure. Safe to retry."""

    exit_code = 3


class RpcError(ChainriteError):
    """The node answered with a JSON-RPC error object."""

    exit_code = 4

    def __init__(self, code: int, message: str, data: Any = None, **context: Any) -> None:
        self.code = code
        self.rpc_message = message
        self.data = data
        super().__init__(f"RPC error {code}: {message}", **context)


class NotFoundError(ChainriteError):
    exit_code = 5


class InvalidKeyError(ChainriteError):
    exit_code = 6


class EncodingError(ChainriteError):
    exit_code = 7


class EstimationError(ChainriteError):
    exit_code = 8


class InsufficientBalanceError(ChainriteError):
    exit_code = 9

    def __init__(self, address: str, required: int, available: int, **context: Any) -> None:
        self.address = address
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: need {required} wei, have {available} wei",
            address=address,
            **context,
        )


class InvalidTransactionError(ChainriteError):
    exit_code = 10


class ConfirmationTimeoutError(ChainriteError):
    """
    No receipt appeared in time.

    The transaction may still be mined later; this only reports that waiting
    stopped.
    """

    exit_code = 11

    def __init__(self, tx_hash: str, timeout: Optional[float] = None, **context: Any) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout}s",
            **context,
        )


class ConfirmationCancelledError(ChainriteError):
    exit_code = 12

    def __init__(self, tx_hash: str, **context: Any) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Stopped waiting for {tx_hash}", **context)


class InvalidStateTransitionError(ChainriteError):
    exit_code = 13
