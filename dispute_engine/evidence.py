"""Append-only evidence registry.

Evidence is keyed by ``(dispute_id, evidence_id)``. Ids are allocated per
dispute from a counter starting at 1 and never reused. Items are frozen
once written; there is no update or delete.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from dispute_engine.schemas import EvidenceItem

logger = logging.getLogger(__name__)


class EvidenceRegistry:
    def __init__(self) -> None:
        self._items: dict[tuple[int, int], EvidenceItem] = {}
        self._counters: dict[int, int] = {}

    def open(self, dispute_id: int) -> None:
        """Initialise the evidence counter for a new dispute at 0."""
        self._counters.setdefault(dispute_id, 0)

    def append(
        self,
        dispute_id: int,
        submitter: str,
        digest: bytes,
        weight: int,
        height: int,
    ) -> int:
        """Record a new item and return its per-dispute evidence id."""
        evidence_id = self._counters.get(dispute_id, 0) + 1
        item = EvidenceItem(
            dispute_id=dispute_id,
            evidence_id=evidence_id,
            submitter=submitter,
            digest=digest,
            weight=weight,
            submitted_at=height,
        )
        self._items[(dispute_id, evidence_id)] = item
        self._counters[dispute_id] = evidence_id
        logger.info(
            "Evidence recorded: dispute=%d evidence=%d submitter=%s weight=%d",
            dispute_id,
            evidence_id,
            submitter,
            weight,
        )
        return evidence_id

    def get(self, dispute_id: int, evidence_id: int) -> EvidenceItem | None:
        return self._items.get((dispute_id, evidence_id))

    def count(self, dispute_id: int) -> int:
        return self._counters.get(dispute_id, 0)

    def items(self, dispute_id: int) -> Iterator[EvidenceItem]:
        """Yield the dispute's items in evidence-id order."""
        for evidence_id in range(1, self.count(dispute_id) + 1):
            item = self._items.get((dispute_id, evidence_id))
            if item is not None:
                yield item
