"""
Nonce Allocator - per-address nonce sequencing.

Every allocation re-reads the pending nonce from the node and never hands out
a value lower than one it already allocated, so sequential builds in one
session get strictly increasing nonces without gaps even before the earlier
transactions reach the node's pool.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from loguru import logger

if TYPE_CHECKING:
    from .rpc import ChainClient


class NonceAllocator:
    def __init__(self, client: "ChainClient") -> None:
        self.client = client
        self._next: dict[str, int] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, address: str) -> threading.RLock:
        key = address.lower()
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def lock(self, address: str) -> Iterator[None]:
        """Serialize build -> sign -> submit for one sending address."""
        with self._lock_for(address):
            yield

    def allocate(self, address: str) -> int:
        """
        Allocate the next nonce for ``address``.

        Returns:
            max(pending nonce on chain, last allocated + 1)
        """
        key = address.lower()
        with self._lock_for(address):
            chain_nonce = self.client.get_nonce(address, pending=True)
            nonce = max(chain_nonce, self._next.get(key, 0))
            self._next[key] = nonce + 1
            logger.debug("Allocated nonce {} for {} (chain: {})", nonce, address, chain_nonce)
            return nonce

    def release(self, address: str, nonce: int) -> bool:
        """
        Give back a nonce whose transaction never reached the network.

        Only the most recent allocation can be released; anything older would
        leave a gap. Returns True if the nonce was released.
        """
        key = address.lower()
        with self._lock_for(address):
            if self._next.get(key) == nonce + 1:
                self._next[key] = nonce
                logger.debug("Released nonce {} for {}", nonce, address)
                return True
            return False

    def reset(self, address: str) -> None:
        """Forget local state; the next allocation trusts the node again."""
        with self._lock_for(address):
            self._next.pop(address.lower(), None)
            logger.warning("Nonce tracking reset for {}", address)

    def peek(self, address: str) -> int:
        """Next nonce ``allocate`` would hand out without consuming it."""
        with self._lock_for(address):
            chain_nonce = self.client.get_nonce(address, pending=True)
            return max(chain_nonce, self._next.get(address.lower(), 0))
