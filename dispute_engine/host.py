"""In-memory host ledger that the engine runs against.

The engine treats the hosting ledger as an external collaborator that
provides four things:

- the identity of the caller for the current operation,
- a monotonically non-decreasing height used as a timestamp,
- an atomic value transfer between accounts,
- a fixed-size digest function.

``HostLedger`` implements that contract in process. The caller identity is
bound per operation with ``as_caller`` and stored in a per-ledger
``ContextVar``, so concurrent threads and async tasks each see their own
caller, and a caller bound on one ledger is invisible to any other.

**Thread safety:** balance and height mutations are serialized via a
reentrant lock.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from dispute_engine.errors import InsufficientFunds, Unauthorized

logger = logging.getLogger(__name__)


class HostLedger:
    """Balances, heights, and caller context for a single engine deployment."""

    def __init__(self, start_height: int = 0) -> None:
        if start_height < 0:
            raise ValueError("start_height must be non-negative")
        self._balances: dict[str, int] = {}
        self._height = start_height
        self._lock = threading.RLock()
        self._caller: ContextVar[str | None] = ContextVar(
            f"dispute_engine_caller_{id(self):x}", default=None
        )

    # ------------------------------------------------------------------
    # Caller identity
    # ------------------------------------------------------------------

    @contextmanager
    def as_caller(self, identity: str) -> Iterator[str]:
        """Bind *identity* as the invoking principal for the enclosed block."""
        if not identity:
            raise Unauthorized("Caller identity must be non-empty")
        token = self._caller.set(identity)
        try:
            yield identity
        finally:
            self._caller.reset(token)

    def caller_identity(self) -> str:
        caller = self._caller.get()
        if caller is None:
            raise Unauthorized("No caller identity bound to this operation")
        return caller

    # ------------------------------------------------------------------
    # Height
    # ------------------------------------------------------------------

    def current_height(self) -> int:
        with self._lock:
            return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the height forward by *blocks* and return the new height."""
        if blocks < 0:
            raise ValueError("Height never decreases")
        with self._lock:
            self._height += blocks
            return self._height

    # ------------------------------------------------------------------
    # Value
    # ------------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def credit(self, account: str, amount: int) -> int:
        """Mint *amount* into *account*. Returns the new balance."""
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
            return self._balances[account]

    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        """Atomically move *amount* from *sender* to *recipient*.

        A zero amount is a no-op. Raises InsufficientFunds, leaving both
        balances untouched, when the sender cannot cover the amount.
        """
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative")
        if amount == 0:
            return
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientFunds(
                    f"{sender} holds {available}, cannot transfer {amount}"
                )
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.debug("Transferred %d from %s to %s", amount, sender, recipient)

    # ------------------------------------------------------------------
    # Digest
    # ------------------------------------------------------------------

    @staticmethod
    def digest(data: bytes) -> bytes:
        return hashlib.sha256(data).digest()
