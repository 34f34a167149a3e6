"""
Shared fixtures.

``FakeNode`` is a tiny in-memory Ethereum node speaking JSON-RPC through
``httpx.MockTransport``. It decodes the raw transactions it receives, checks
their nonces, keeps balances, and runs a Counter contract, so tests drive the
real ChainClient / builder / signer / submitter code without a network.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pytest
import rlp
from eth_abi import encode
from eth_account import Account
from eth_hash.auto import keccak
from loguru import logger

from chainrite.pneuma.abi import function_selector
from chainrite.pneuma.contract import contract_address_for
from chainrite.pneuma.rpc import ChainClient
from chainrite.sigil.eth import LocalSigner

# Well-known development key (Hardhat / Anvil account #0). Test use only.
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
RECIPIENT = "0x489C6e2f86d21F84B5207520D070B12573F739F5"

CHAIN_ID = 11155111
GWEI = 10**9

GET_COUNT = function_selector("getCount()")
INCREMENT = function_selector("increment()")
SET_COUNT = function_selector("setCount(uint256)")

FAKE_BYTECODE = bytes.fromhex("6080604052348015600f57600080fd5b50")


def _hex(value: int) -> str:
    return hex(value)


class FakeNode:
    def __init__(self) -> None:
        self.chain_id = CHAIN_ID
        self.gas_price = 20 * GWEI
        self.head = 9_735_711
        self.balances: dict[str, int] = {}
        self.nonces: dict[str, int] = {}
        self.receipts: dict[str, dict] = {}
        self.known: set[str] = set()
        self.counters: dict[str, int] = {}
        self.calls: list[str] = []
        self.raw_seen: list[str] = []
        self.raw_attempts: list[str] = []
        self.auto_mine = True
        self.revert_next = False
        self.estimate_error: Optional[str] = None
        self.estimate = 50_000
        self.fail: dict[str, int] = {}
        self.http_status: list[int] = []

    # -- helpers ----------------------------------------------------------

    def fund(self, address: str, wei: int) -> None:
        self.balances[address.lower()] = wei

    def set_nonce(self, address: str, nonce: int) -> None:
        self.nonces[address.lower()] = nonce

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def mine(self) -> None:
        """Mine every pending transaction (used with auto_mine=False)."""
        for tx_hash in list(self.known):
            receipt = self.receipts.get(tx_hash)
            if receipt is not None and receipt["blockNumber"] is None:
                self.head += 1
                receipt["blockNumber"] = _hex(self.head)

    def _block(self, number: int, full: bool) -> dict:
        tx = {
            "hash": "0x" + "aa" * 32,
            "from": TEST_ADDRESS,
            "to": RECIPIENT,
            "value": _hex(10**15),
            "gas": _hex(21_000),
            "gasPrice": _hex(self.gas_price),
            "nonce": "0x0",
        }
        return {
            "number": _hex(number),
            "hash": "0x" + f"{number:064x}",
            "parentHash": "0x" + f"{number - 1:064x}",
            "timestamp": _hex(1_700_000_000 + number * 12),
            "gasUsed": _hex(21_000),
            "gasLimit": _hex(30_000_000),
            "miner": "0x" + "11" * 20,
            "baseFeePerGas": _hex(GWEI),
            "transactions": [tx if full else tx["hash"]],
        }

    # -- JSON-RPC methods -------------------------------------------------

    def _send_raw(self, raw_hex: str) -> Any:
        self.raw_seen.append(raw_hex)
        raw = bytes.fromhex(raw_hex[2:])
        tx_hash = "0x" + keccak(raw).hex()
        if tx_hash in self.known:
            raise _RpcFailure(-32000, "already known")

        fields = rlp.decode(raw)
        nonce = int.from_bytes(fields[0], "big")
        gas_price = int.from_bytes(fields[1], "big")
        gas = int.from_bytes(fields[2], "big")
        to = ("0x" + fields[3].hex()) if fields[3] else None
        value = int.from_bytes(fields[4], "big")
        data = bytes(fields[5])
        sender = Account.recover_transaction(raw_hex)

        key = sender.lower()
        expected = self.nonces.get(key, 0)
        if nonce < expected:
            raise _RpcFailure(-32000, "nonce too low")
        if nonce > expected:
            raise _RpcFailure(-32000, "nonce too high")
        if self.balances.get(key, 0) < value + gas * gas_price:
            raise _RpcFailure(-32000, "insufficient funds for gas * price + value")

        self.nonces[key] = nonce + 1
        self.known.add(tx_hash)

        status = 0 if self.revert_next else 1
        self.revert_next = False
        contract_address = None
        gas_used = 21_000

        if status:
            if to is None:
                contract_address = contract_address_for(sender, nonce)
                self.counters[contract_address.lower()] = int.from_bytes(data[-32:], "big")
                gas_used = 150_000
            elif to.lower() in self.counters:
                gas_used = 30_000
                selector = data[:4]
                if selector == INCREMENT:
                    self.counters[to.lower()] += 1
                elif selector == SET_COUNT:
                    self.counters[to.lower()] = int.from_bytes(data[4:36], "big")
            self.balances[key] -= value
            if to is not None:
                self.balances[to.lower()] = self.balances.get(to.lower(), 0) + value
        self.balances[key] -= gas_used * gas_price

        if self.auto_mine:
            self.head += 1
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": _hex(self.head) if self.auto_mine else None,
            "blockHash": "0x" + "bb" * 32,
            "status": _hex(status),
            "gasUsed": _hex(gas_used),
            "effectiveGasPrice": _hex(gas_price),
            "contractAddress": contract_address,
        }
        return tx_hash

    def _dispatch(self, method: str, params: list) -> Any:
        if method == "eth_chainId":
            return _hex(self.chain_id)
        if method == "eth_blockNumber":
            return _hex(self.head)
        if method == "eth_gasPrice":
            return _hex(self.gas_price)
        if method == "eth_getBalance":
            return _hex(self.balances.get(params[0].lower(), 0))
        if method == "eth_getTransactionCount":
            return _hex(self.nonces.get(params[0].lower(), 0))
        if method == "eth_getBlockByNumber":
            tag, full = params
            number = self.head if tag == "latest" else int(tag, 16)
            if number > self.head:
                return None
            return self._block(number, full)
        if method == "eth_estimateGas":
            if self.estimate_error:
                raise _RpcFailure(3, self.estimate_error)
            return _hex(self.estimate)
        if method == "eth_call":
            call = params[0]
            address = call["to"].lower()
            data = bytes.fromhex(call["data"][2:])
            if address not in self.counters:
                return "0x"
            if data[:4] == GET_COUNT:
                return "0x" + encode(["uint256"], [self.counters[address]]).hex()
            raise _RpcFailure(3, "execution reverted")
        if method == "eth_getCode":
            return "0x6080" if params[0].lower() in self.counters else "0x"
        if method == "eth_sendRawTransaction":
            return self._send_raw(params[0])
        if method == "eth_getTransactionReceipt":
            return self.receipts.get(params[0])
        if method == "eth_getTransactionByHash":
            receipt = self.receipts.get(params[0])
            if receipt is None:
                return None
            return {"hash": params[0], "blockNumber": receipt["blockNumber"]}
        raise _RpcFailure(-32601, f"method {method} not found")

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        self.calls.append(method)
        if method == "eth_sendRawTransaction":
            self.raw_attempts.append(payload["params"][0])

        if self.http_status:
            return httpx.Response(self.http_status.pop(0), text="unavailable")
        if self.fail.get(method):
            self.fail[method] -= 1
            raise httpx.ConnectError("connection refused", request=request)

        body: dict[str, Any] = {"jsonrpc": "2.0", "id": payload["id"]}
        try:
            body["result"] = self._dispatch(method, payload["params"])
        except _RpcFailure as exc:
            body["error"] = {"code": exc.code, "message": exc.message}
        return httpx.Response(200, json=body)


class _RpcFailure(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger.remove()


@pytest.fixture()
def node() -> FakeNode:
    fake = FakeNode()
    fake.fund(TEST_ADDRESS, 10**18)
    return fake


@pytest.fixture()
def client(node: FakeNode):
    chain = ChainClient(
        "http://fake-node.invalid",
        retries=3,
        backoff=0,
        transport=httpx.MockTransport(node.handle),
    )
    yield chain
    chain.close()


@pytest.fixture()
def signer() -> LocalSigner:
    return LocalSigner(TEST_KEY)


@pytest.fixture()
def test_key() -> str:
    return TEST_KEY


@pytest.fixture()
def recipient() -> str:
    return RECIPIENT


@pytest.fixture()
def counter_bytecode() -> bytes:
    return FAKE_BYTECODE
