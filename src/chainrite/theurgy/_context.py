"""Shared state for CLI commands: settings, client and signer, built lazily."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import click

from ..config import Settings
from ..errors import ChainriteError
from ..pneuma.abi import COUNTER_ABI
from ..pneuma.confirm import Submitter
from ..pneuma.contract import ContractInvoker
from ..pneuma.rpc import ChainClient
from ..pneuma.tx import TransactionBuilder
from ..sigil.eth import LocalSigner


@dataclass
class RuntimeContext:
    settings: Settings
    client: Optional[ChainClient] = None
    signer: Optional[LocalSigner] = None
    _owns_client: bool = field(default=False, repr=False)

    def get_client(self) -> ChainClient:
        if self.client is None:
            self.client = ChainClient(
                self.settings.rpc_url,
                timeout=self.settings.rpc_timeout,
                retries=self.settings.rpc_retries,
            )
            self._owns_client = True
        return self.client

    def get_signer(self) -> LocalSigner:
        if self.signer is None:
            self.signer = LocalSigner.from_env()
        return self.signer

    def invoker(self, with_signer: bool = True) -> ContractInvoker:
        client = self.get_client()
        return ContractInvoker(
            client,
            self.get_signer() if with_signer else None,
            abi=COUNTER_ABI,
            builder=TransactionBuilder(client, gas_margin=self.settings.gas_margin),
            submitter=Submitter(
                client,
                retries=self.settings.rpc_retries,
                poll_interval=self.settings.poll_interval,
                timeout=self.settings.confirm_timeout,
            ),
        )

    def close(self) -> None:
        if self._owns_client and self.client is not None:
            self.client.close()
            self.client = None


def fail(exc: ChainriteError) -> NoReturn:
    click.secho(f"ERROR: {exc}", fg="red")
    sys.exit(exc.exit_code)
