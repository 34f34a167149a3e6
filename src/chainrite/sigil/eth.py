"""
ECDSA / secp256k1 keys and transaction signing.

The private key enters the process only through the ``PRIVATE_KEY``
environment variable (optionally seeded from ~/.chainrite/.env by
python-dotenv, or injected by a secret store / CI runner). It is held in
memory by ``LocalSigner`` and never logged or echoed in error messages.

Dependencies: eth-account (no full web3.py needed)
"""

from __future__ import annotations

import os
import re
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv, set_key
from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger

from ..config import CHAINRITE_ENV
from ..errors import ConfigError, InvalidKeyError
from ..pneuma.tx import SignedTransaction, UnsignedTransaction
from ..utils import bytes_to_hex

_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def generate_key() -> tuple[str, str]:
    """Fresh secp256k1 key. Returns (0x-hex private key, checksummed address)."""
    private_key = "0x" + secrets.token_hex(32)
    return private_key, Account.from_key(private_key).address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Store PRIVATE_KEY in a .env file readable only by the owner.

    Other entries in the file are left as they are.

    Returns:
        Path to the .env file (default: ~/.chainrite/.env)
    """
    env_path = env_path or CHAINRITE_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(mode=0o600, exist_ok=True)

    set_key(env_path, "PRIVATE_KEY", normalize_private_key(private_key), quote_mode="never")

    if os.name != "nt":
        env_path.chmod(0o600)
    return env_path


def normalize_private_key(private_key: str) -> str:
    """
    Return the key as 0x-prefixed hex.

    Raises:
        InvalidKeyError: If the value is not 32 bytes of hex
    """
    if not isinstance(private_key, str):
        raise InvalidKeyError("Private key must be a hex string")
    body = private_key.strip()
    if body.startswith(("0x", "0X")):
        body = body[2:]
    if not _KEY_PATTERN.match(body):
        raise InvalidKeyError("Private key must be 32 bytes of hex (64 characters)")
    return "0x" + body.lower()


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load the private key from the environment.

    Args:
        env_path: .env file to read first (default: ~/.chainrite/.env).
                  A PRIVATE_KEY already in the environment wins.

    Returns:
        0x-prefixed hex private key

    Raises:
        ConfigError: If PRIVATE_KEY is not set
        InvalidKeyError: If PRIVATE_KEY is malformed
    """
    env_path = env_path or CHAINRITE_ENV

    if env_path.exists():
        load_dotenv(env_path, override=False)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ConfigError(f"PRIVATE_KEY not set. Export it or add it to {env_path}")

    return normalize_private_key(private_key)


def recover_sender(raw: bytes) -> str:
    """Decode a serialized signed transaction and re-derive its sender."""
    return Account.recover_transaction(bytes_to_hex(raw))


class LocalSigner:
    """Signs transactions with an in-memory key."""

    def __init__(self, private_key: str) -> None:
        key = normalize_private_key(private_key)
        try:
            self._account: LocalAccount = Account.from_key(key)
        except Exception:
            # eth-keys rejects zero and out-of-curve-order keys with its own error type.
            raise InvalidKeyError("Private key is not a valid secp256k1 scalar") from None

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "LocalSigner":
        return cls(load_private_key(env_path))

    @property
    def address(self) -> str:
        return self._account.address

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"

    def sign(self, tx: UnsignedTransaction, chain_id: int) -> SignedTransaction:
        """
        Sign ``tx`` for ``chain_id`` (EIP-155).

        Signatures are deterministic (RFC 6979): the same transaction, key and
        chain id always give the same hash.
        """
        signed = self._account.sign_transaction(tx.as_dict(chain_id))
        result = SignedTransaction(
            unsigned=tx,
            chain_id=chain_id,
            raw=bytes(signed.raw_transaction),
            hash=bytes_to_hex(signed.hash),
            sender=self.address,
            v=signed.v,
            r=signed.r,
            s=signed.s,
        )
        logger.debug("Signed {} nonce={} chain={}", result.hash, tx.nonce, chain_id)
        return result
