"""
JSON-RPC Client for Ethereum-compatible nodes.

Lightweight alternative to web3.py: uses httpx for HTTP and returns small
frozen dataclasses for blocks and receipts. Transport failures are retried
with exponential backoff; JSON-RPC error objects are not.
"""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Union

import httpx
from loguru import logger

from ..errors import (
    ConfirmationCancelledError,
    ConfirmationTimeoutError,
    EstimationError,
    NotFoundError,
    RpcError,
    TransportError,
)
from ..utils import bytes_to_hex, hex_to_bytes, to_hex, to_int

if TYPE_CHECKING:
    from .tx import SignedTransaction

BlockId = Union[int, str, None]

_RETRYABLE_STATUS = {429, 502, 503, 504}
_MAX_BACKOFF = 8.0


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BlockTransaction:
    hash: str
    sender: Optional[str]
    to: Optional[str]
    value: int
    gas: int
    gas_price: int
    nonce: int

    @classmethod
    def from_rpc(cls, data: dict) -> "BlockTransaction":
        return cls(
            hash=data["hash"],
            sender=data.get("from"),
            to=data.get("to"),
            value=to_int(data.get("value")),
            gas=to_int(data.get("gas")),
            gas_price=to_int(data.get("gasPrice")),
            nonce=to_int(data.get("nonce")),
        )


@dataclass(frozen=True)
class Block:
    number: int
    hash: str
    parent_hash: str
    timestamp: int
    gas_used: int
    gas_limit: int
    miner: str
    transaction_count: int
    transactions: tuple[BlockTransaction, ...] = ()
    base_fee_per_gas: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: dict) -> "Block":
        raw_txs = data.get("transactions") or []
        # Hash-only blocks list strings; full blocks list objects.
        txs = tuple(
            BlockTransaction.from_rpc(tx) for tx in raw_txs if isinstance(tx, dict)
        )
        base_fee = data.get("baseFeePerGas")
        return cls(
            number=to_int(data["number"]),
            hash=data["hash"],
            parent_hash=data["parentHash"],
            timestamp=to_int(data["timestamp"]),
            gas_used=to_int(data["gasUsed"]),
            gas_limit=to_int(data["gasLimit"]),
            miner=data.get("miner", ""),
            transaction_count=len(raw_txs),
            transactions=txs,
            base_fee_per_gas=to_int(base_fee) if base_fee is not None else None,
        )


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    block_number: int
    status: int
    gas_used: int
    effective_gas_price: int = 0
    contract_address: Optional[str] = None
    block_hash: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, data: dict) -> "Receipt":
        return cls(
            tx_hash=data["transactionHash"],
            block_number=to_int(data["blockNumber"]),
            status=to_int(data.get("status", "0x0")),
            gas_used=to_int(data.get("gasUsed")),
            effective_gas_price=to_int(data.get("effectiveGasPrice")),
            contract_address=data.get("contractAddress"),
            block_hash=data.get("blockHash"),
        )


def _block_tag(block: BlockId) -> str:
    if block is None or block == "latest":
        return "latest"
    if isinstance(block, str):
        return block
    if block <= 0:
        return "latest"
    return to_hex(block)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ChainClient:
    """
    Synchronous JSON-RPC client.

    Read methods share no mutable state besides the cached chain id and the
    httpx connection pool, so one client can serve several threads.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        retries: int = 3,
        backoff: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.retries = max(1, retries)
        self.backoff = backoff
        self._http = httpx.Client(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)
        self._chain_id: Optional[int] = None
        self._chain_id_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ChainClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- transport ---------------------------------------------------------

    def _post(self, payload: dict) -> dict:
        response = self._http.post(self.rpc_url, json=payload)
        if response.status_code in _RETRYABLE_STATUS:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}", request=response.request, response=response
            )
        response.raise_for_status()
        return response.json()

    def request(self, method: str, params: list, retries: Optional[int] = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "eth_call")
            params: RPC parameters
            retries: Attempts for this call (default: the client setting)

        Returns:
            Result field from the RPC response

        Raises:
            TransportError: If the node is unreachable after all retries
            RpcError: If the node returns an error object
        """
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        attempts = self.retries if retries is None else max(1, retries)

        for attempt in range(1, attempts + 1):
            try:
                data = self._post(payload)
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status not in _RETRYABLE_STATUS and status < 500:
                    raise TransportError(f"{method} failed: HTTP {status}") from exc
                error: Exception = exc
            except (httpx.TransportError, ValueError) as exc:
                # ValueError covers a non-JSON body from a flaky proxy.
                error = exc

            if attempt == attempts:
                raise TransportError(
                    f"{method} failed after {attempt} attempts: {error}"
                ) from error
            wait = min(self.backoff * (2 ** (attempt - 1)), _MAX_BACKOFF)
            logger.warning(
                "RPC transient error on {} attempt {}/{}, retrying in {:.2f}s: {}",
                method, attempt, attempts, wait, error,
            )
            time.sleep(wait)

        if "error" in data:
            err = data["error"] or {}
            raise RpcError(err.get("code", -32000), err.get("message", "Unknown error"), err.get("data"))
        return data.get("result")

    # -- chain state ------------------------------------------------------

    def chain_id(self) -> int:
        """Chain id used for EIP-155 signatures. Fetched once per client."""
        with self._chain_id_lock:
            if self._chain_id is None:
                self._chain_id = to_int(self.request("eth_chainId", []))
                logger.debug("Chain id: {}", self._chain_id)
            return self._chain_id

    def block_number(self) -> int:
        return to_int(self.request("eth_blockNumber", []))

    def get_nonce(self, address: str, pending: bool = True) -> int:
        tag = "pending" if pending else "latest"
        return to_int(self.request("eth_getTransactionCount", [address, tag]))

    def get_gas_price(self) -> int:
        return to_int(self.request("eth_gasPrice", []))

    def get_balance(self, address: str, block: BlockId = "latest") -> int:
        return to_int(self.request("eth_getBalance", [address, _block_tag(block)]))

    def get_block(self, number: BlockId = None, full_transactions: bool = True) -> Block:
        """
        Fetch a block.

        Args:
            number: Block number; None, 0, negative or "latest" mean the latest block
            full_transactions: Include transaction objects instead of hashes

        Raises:
            NotFoundError: If the node has no such block
        """
        tag = _block_tag(number)
        data = self.request("eth_getBlockByNumber", [tag, full_transactions])
        if data is None:
            raise NotFoundError("Block not found", block=number)
        return Block.from_rpc(data)

    def get_code(self, address: str, block: BlockId = "latest") -> bytes:
        return hex_to_bytes(self.request("eth_getCode", [address, _block_tag(block)]) or "0x")

    def get_transaction(self, tx_hash: str) -> dict:
        data = self.request("eth_getTransactionByHash", [tx_hash])
        if data is None:
            raise NotFoundError("Transaction not found", tx_hash=tx_hash)
        return data

    # -- calls and gas ----------------------------------------------------

    def estimate_gas(self, tx: dict) -> int:
        """
        Estimate gas for a call object ({"from", "to", "data", "value"}).

        Raises:
            EstimationError: If the node rejects the estimate (e.g. revert)
        """
        call = {k: (to_hex(v) if isinstance(v, int) else v) for k, v in tx.items() if v is not None}
        try:
            return to_int(self.request("eth_estimateGas", [call]))
        except RpcError as exc:
            raise EstimationError(
                f"Gas estimation failed: {exc.message}",
                sender=tx.get("from"),
                to=tx.get("to"),
            ) from exc

    def call(self, to: str, data: bytes, block: BlockId = "latest") -> bytes:
        result = self.request("eth_call", [{"to": to, "data": bytes_to_hex(data)}, _block_tag(block)])
        return hex_to_bytes(result or "0x")

    # -- submission -------------------------------------------------------

    def submit(self, signed: "SignedTransaction") -> str:
        """
        Broadcast a signed transaction once. Returns the transaction hash.

        A lost response leaves the outcome unknown, so this call is never
        retried here; ``Submitter.submit`` owns the rebroadcast.
        """
        tx_hash = self.request("eth_sendRawTransaction", [bytes_to_hex(signed.raw)], retries=1)
        logger.info("Submitted {} (nonce {})", tx_hash, signed.nonce)
        return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        data = self.request("eth_getTransactionReceipt", [tx_hash])
        if data is None or data.get("blockNumber") is None:
            return None
        return Receipt.from_rpc(data)

    def wait_for_receipt(
        self,
        tx_hash: str,
        poll_interval: float = 2.0,
        timeout: float = 120.0,
        cancel: Optional[threading.Event] = None,
    ) -> Receipt:
        """
        Wait for a transaction receipt.

        Args:
            tx_hash: Transaction hash
            poll_interval: Polling interval in seconds
            timeout: Maximum wait time in seconds
            cancel: Event the caller sets to stop waiting

        Returns:
            The receipt, whatever its status

        Raises:
            ConfirmationTimeoutError: If no receipt appears within timeout
            ConfirmationCancelledError: If cancel is set first
            ValueError: If poll_interval is not positive
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        deadline = time.monotonic() + timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise ConfirmationCancelledError(tx_hash)
            receipt = self.get_receipt(tx_hash)
            if receipt is not None:
                return receipt
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeoutError(tx_hash, timeout)
            wait = min(poll_interval, remaining)
            if cancel is not None:
                if cancel.wait(wait):
                    raise ConfirmationCancelledError(tx_hash)
            else:
                time.sleep(wait)
