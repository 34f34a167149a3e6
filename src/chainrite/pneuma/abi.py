"""
ABI handling - artifact loading, call encoding and result decoding.

Creation bytecode comes from Foundry build output (contracts/out/*.json) or an
explicit artifact file. The Counter ABI is kept inline so reads and writes
work without a build.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_hash.auto import keccak

from ..errors import EncodingError
from ..utils import hex_to_bytes

COUNTER_ABI: list[dict[str, Any]] = [
    {
        "type": "constructor",
        "inputs": [{"name": "_initialCount", "type": "uint256"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "getCount",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "increment",
        "inputs": [],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "setCount",
        "inputs": [{"name": "_count", "type": "uint256"}],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]


def _find_contracts_out() -> Path:
    """
    Locate the contracts/out/ directory.

    Searches from the current working directory, then from this file upward.
    """
    starts = [Path.cwd().resolve(), Path(__file__).resolve()]
    for start in starts:
        for parent in [start, *start.parents]:
            candidate = parent / "contracts" / "out"
            if candidate.is_dir():
                return candidate
    raise FileNotFoundError(
        "Cannot find contracts/out/. Run 'forge build' in the contracts/ directory."
    )


def load_bytecode(contract_name: str, artifact_path: Optional[Path] = None) -> bytes:
    """
    Load creation bytecode from a Foundry artifact.

    Args:
        contract_name: Contract name (e.g., "Counter")
        artifact_path: Explicit artifact JSON or raw hex file; overrides lookup

    Returns:
        Bytecode as bytes
    """
    if artifact_path is None:
        artifact_path = _find_contracts_out() / f"{contract_name}.sol" / f"{contract_name}.json"
    if not artifact_path.exists():
        raise FileNotFoundError(f"Bytecode not found: {artifact_path}")

    text = artifact_path.read_text(encoding="utf-8").strip()
    if text.startswith("{"):
        bytecode = json.loads(text).get("bytecode", {})
        # Foundry nests it under "object"; Hardhat stores the hex string directly.
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object", "")
    else:
        bytecode = text

    if not bytecode or bytecode == "0x":
        raise ValueError(f"No bytecode in artifact for {contract_name}")
    try:
        return hex_to_bytes(bytecode)
    except ValueError as exc:
        raise ValueError(f"Bytecode for {contract_name} is not valid hex") from exc


def find_function(abi: Sequence[dict], function_name: str) -> dict:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return entry
    raise EncodingError(f"Function {function_name} not found in ABI")


def _types(params: Sequence[dict]) -> list[str]:
    return [p["type"] for p in params]


def function_signature(entry: dict) -> str:
    return f"{entry['name']}({','.join(_types(entry.get('inputs', [])))})"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 of the canonical signature."""
    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(signature.encode("utf-8"))[:4]


def encode_args(types: list[str], args: Sequence[Any], where: str) -> bytes:
    if len(types) != len(args):
        raise EncodingError(f"{where} expects {len(types)} argument(s), got {len(args)}")
    if not types:
        return b""
    try:
        return encode(types, list(args))
    except (AbiEncodingError, TypeError, ValueError, OverflowError) as exc:
        raise EncodingError(f"Cannot encode arguments for {where}: {exc}") from exc


def encode_call(abi: Sequence[dict], function_name: str, args: Sequence[Any] = ()) -> bytes:
    """ABI-encode a function call to calldata bytes."""
    func = find_function(abi, function_name)
    signature = function_signature(func)
    return function_selector(signature) + encode_args(_types(func.get("inputs", [])), args, signature)


def encode_constructor(bytecode: bytes, abi: Sequence[dict], args: Sequence[Any] = ()) -> bytes:
    """Append ABI-encoded constructor arguments to creation bytecode."""
    constructor = next((e for e in abi if e.get("type") == "constructor"), None)
    if constructor is None:
        if args:
            raise EncodingError("Constructor arguments given but the ABI has no constructor")
        return bytecode
    types = _types(constructor.get("inputs", []))
    return bytecode + encode_args(types, args, "constructor")


def decode_result(abi: Sequence[dict], function_name: str, data: bytes) -> Any:
    """
    ABI-decode a function call result.

    Returns:
        None for functions without outputs, the value for a single output,
        otherwise a tuple
    """
    func = find_function(abi, function_name)
    output_types = _types(func.get("outputs", []))
    if not output_types:
        return None
    try:
        decoded = decode(output_types, data)
    except (DecodingError, ValueError) as exc:
        raise EncodingError(
            f"Cannot decode {function_name} result as ({','.join(output_types)}): {exc}"
        ) from exc
    if len(decoded) == 1:
        return decoded[0]
    return decoded
