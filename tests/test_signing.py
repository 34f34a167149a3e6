"""Tests for sigil.eth: key loading and transaction signing."""

from __future__ import annotations

import os
import stat

import pytest
from eth_account import Account
from eth_hash.auto import keccak

from chainrite.errors import ConfigError, InvalidKeyError
from chainrite.pneuma.tx import UnsignedTransaction
from chainrite.sigil.eth import (
    LocalSigner,
    generate_key,
    load_private_key,
    normalize_private_key,
    recover_sender,
    save_private_key,
)

CHAIN_ID = 11155111
CURVE_ORDER = "fffffffffffffffffffffffffffffffebaaedce6af48a03bbfd25e8cd0364141"


@pytest.fixture()
def transfer(recipient) -> UnsignedTransaction:
    return UnsignedTransaction(
        nonce=5, to=recipient, value=10**15, gas_limit=21_000, gas_price=20_000_000_000
    )


@pytest.fixture()
def no_key_env(monkeypatch):
    """Start without PRIVATE_KEY and restore whatever was there afterwards."""
    monkeypatch.setenv("PRIVATE_KEY", "placeholder")
    monkeypatch.delenv("PRIVATE_KEY")
    return monkeypatch


class TestKeys:
    def test_generate_key(self) -> None:
        private_key, address = generate_key()
        assert private_key.startswith("0x") and len(private_key) == 66
        assert Account.from_key(private_key).address == address

    def test_normalize_accepts_bare_hex(self, test_key) -> None:
        assert normalize_private_key(test_key[2:].upper()) == test_key

    @pytest.mark.parametrize(
        "bad",
        ["", "0x", "0x1234", "zz" * 32, "0x" + "ab" * 33],
    )
    def test_normalize_rejects_malformed(self, bad) -> None:
        with pytest.raises(InvalidKeyError):
            normalize_private_key(bad)

    @pytest.mark.parametrize("scalar", ["00" * 32, CURVE_ORDER])
    def test_signer_rejects_out_of_range_scalar(self, scalar) -> None:
        with pytest.raises(InvalidKeyError) as exc_info:
            LocalSigner("0x" + scalar)
        assert exc_info.value.exit_code == 6

    def test_error_does_not_echo_key(self) -> None:
        bad = "0x" + "ab" * 31 + "zz"
        with pytest.raises(InvalidKeyError) as exc_info:
            LocalSigner(bad)
        assert "ab" * 31 not in str(exc_info.value)

    def test_repr_hides_key(self, signer, test_key) -> None:
        assert test_key[2:] not in repr(signer)
        assert signer.address in repr(signer)


class TestLoadPrivateKey:
    def test_from_environment(self, no_key_env, tmp_path, test_key) -> None:
        no_key_env.setenv("PRIVATE_KEY", test_key)
        assert load_private_key(tmp_path / ".env") == test_key

    def test_from_env_file(self, no_key_env, tmp_path, test_key) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(f"PRIVATE_KEY={test_key}\n", encoding="utf-8")
        assert load_private_key(env_file) == test_key

    def test_environment_wins_over_file(self, no_key_env, tmp_path, test_key) -> None:
        other, _ = generate_key()
        env_file = tmp_path / ".env"
        env_file.write_text(f"PRIVATE_KEY={other}\n", encoding="utf-8")
        no_key_env.setenv("PRIVATE_KEY", test_key)
        assert load_private_key(env_file) == test_key

    def test_missing_key(self, no_key_env, tmp_path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_private_key(tmp_path / ".env")
        assert exc_info.value.exit_code == 2

    def test_malformed_key(self, no_key_env, tmp_path) -> None:
        no_key_env.setenv("PRIVATE_KEY", "not-a-key")
        with pytest.raises(InvalidKeyError):
            load_private_key(tmp_path / ".env")

    def test_signer_from_env(self, no_key_env, tmp_path, test_key, signer) -> None:
        no_key_env.setenv("PRIVATE_KEY", test_key)
        assert LocalSigner.from_env(tmp_path / ".env").address == signer.address

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_save_keeps_other_entries(self, tmp_path, test_key) -> None:
        env_file = tmp_path / "nested" / ".env"
        env_file.parent.mkdir()
        env_file.write_text("ETH_RPC_URL=http://localhost:8545\n", encoding="utf-8")

        save_private_key(test_key, env_file)

        content = env_file.read_text(encoding="utf-8")
        assert "ETH_RPC_URL=http://localhost:8545" in content
        assert f"PRIVATE_KEY={test_key}" in content
        assert stat.S_IMODE(env_file.stat().st_mode) == 0o600


class TestSign:
    def test_deterministic(self, signer, transfer) -> None:
        first = signer.sign(transfer, CHAIN_ID)
        second = signer.sign(transfer, CHAIN_ID)
        assert first.raw == second.raw
        assert first.hash == second.hash

    def test_hash_is_keccak_of_raw(self, signer, transfer) -> None:
        signed = signer.sign(transfer, CHAIN_ID)
        assert signed.hash == "0x" + keccak(signed.raw).hex()

    def test_recovers_signer(self, signer, transfer) -> None:
        signed = signer.sign(transfer, CHAIN_ID)
        assert signed.sender == signer.address
        assert signed.recover_sender() == signer.address
        assert recover_sender(signed.raw) == signer.address

    def test_eip155_v(self, signer, transfer) -> None:
        signed = signer.sign(transfer, CHAIN_ID)
        assert signed.v in (CHAIN_ID * 2 + 35, CHAIN_ID * 2 + 36)
        assert signed.chain_id == CHAIN_ID

    def test_chain_id_changes_hash(self, signer, transfer) -> None:
        assert signer.sign(transfer, 1).hash != signer.sign(transfer, CHAIN_ID).hash

    def test_keeps_fields(self, signer, transfer) -> None:
        signed = signer.sign(transfer, CHAIN_ID)
        assert signed.unsigned is transfer
        assert signed.nonce == 5

    def test_legacy_envelope(self, signer, transfer) -> None:
        # A legacy transaction is a bare RLP list, no type byte.
        assert signer.sign(transfer, CHAIN_ID).raw[0] >= 0xC0

    def test_repr_omits_raw(self, signer, transfer) -> None:
        signed = signer.sign(transfer, CHAIN_ID)
        assert signed.raw.hex() not in repr(signed)

    def test_signs_contract_creation(self, signer, counter_bytecode) -> None:
        tx = UnsignedTransaction(
            nonce=0, to=None, value=0, gas_limit=200_000, gas_price=1, data=counter_bytecode
        )
        assert signer.sign(tx, CHAIN_ID).recover_sender() == signer.address
