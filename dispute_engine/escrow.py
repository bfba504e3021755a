"""Escrow ledger: value locked per dispute, released exactly once."""

from __future__ import annotations

import logging

from dispute_engine.host import HostLedger

logger = logging.getLogger(__name__)


class EscrowLedger:
    """Dispute id to locked amount, backed by the host's custody account.

    ``lock`` only records the entry. The caller must already have moved the
    funds into custody in the same logical step.
    """

    def __init__(self, host: HostLedger, custody_account: str) -> None:
        self._host = host
        self._custody = custody_account
        self._entries: dict[int, int] = {}

    @property
    def custody_account(self) -> str:
        return self._custody

    def lock(self, dispute_id: int, amount: int) -> None:
        if dispute_id in self._entries:
            raise ValueError(f"Escrow for dispute {dispute_id} already locked")
        self._entries[dispute_id] = amount
        logger.info("Escrow locked: dispute=%d amount=%d", dispute_id, amount)

    def balance(self, dispute_id: int) -> int | None:
        return self._entries.get(dispute_id)

    def release(self, dispute_id: int, recipient: str) -> int:
        """Transfer the locked amount to *recipient* and drop the entry.

        The entry is removed only once the transfer has succeeded; a failed
        transfer propagates and leaves the entry in place. A missing entry
        releases zero, so a repeated release is a silent no-op.

        Returns the amount released.
        """
        amount = self._entries.get(dispute_id, 0)
        self._host.transfer(amount, self._custody, recipient)
        self._entries.pop(dispute_id, None)
        if amount:
            logger.info(
                "Escrow released: dispute=%d amount=%d recipient=%s",
                dispute_id,
                amount,
                recipient,
            )
        return amount
