"""Dispute lifecycle manager.

Orchestrates the full dispute lifecycle:
1. Plaintiff escrows value and opens a dispute against a defendant
2. Either party opens the evidence phase
3. Both parties submit weighted evidence
4. A registered arbitrator resolves; the basic model picks the winner and
   the full escrow is released to them

States run ``open -> evidence -> resolved``. ``appealed`` exists in the data
model but nothing transitions into it, and the appeal deadline recorded at
resolution is never enforced.

Every public operation holds the engine lock from its first check to its
last write, so eligibility checks and the mutations they guard form one
serialized step. A failed operation leaves no partial state behind.
"""

from __future__ import annotations

import logging
import threading

from dispute_engine.arbitrators import ArbitratorRegistry, Capability, Decision, authorize
from dispute_engine.config import settings
from dispute_engine.errors import (
    InvalidEvidence,
    InvalidState,
    NotFound,
    PredictionFailure,
    Unauthorized,
)
from dispute_engine.escrow import EscrowLedger
from dispute_engine.evidence import EvidenceRegistry
from dispute_engine.host import HostLedger
from dispute_engine.prediction import advanced_prediction, basic_prediction
from dispute_engine.schemas import (
    DIGEST_SIZE,
    BasicPrediction,
    Dispute,
    DisputeState,
    EvidenceItem,
    PredictionReport,
    ResolutionRecord,
    ResolutionResult,
)

logger = logging.getLogger(__name__)


class DisputeEngine:
    """The only component callers invoke to change dispute state."""

    def __init__(
        self,
        host: HostLedger,
        owner: str | None = None,
        custody_account: str | None = None,
        appeal_window: int | None = None,
    ) -> None:
        self._host = host
        self._owner = owner if owner is not None else settings.owner_identity
        self._appeal_window = (
            appeal_window if appeal_window is not None else settings.appeal_window
        )
        self._lock = threading.RLock()

        self._disputes: dict[int, Dispute] = {}
        self._dispute_counter = 0
        self._escrow = EscrowLedger(
            host,
            custody_account if custody_account is not None else settings.custody_account,
        )
        self._evidence = EvidenceRegistry()
        self._arbitrators = ArbitratorRegistry(self._owner)
        self._resolutions: list[ResolutionRecord] = []

    @property
    def host(self) -> HostLedger:
        return self._host

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_dispute(self, defendant: str, amount: int) -> int:
        """Escrow *amount* from the caller and open a dispute against *defendant*.

        The caller becomes the plaintiff. If the funding transfer fails no
        dispute is recorded and the id counter does not move.

        Returns:
            The new dispute id.
        """
        plaintiff = self._host.caller_identity()
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ValueError(f"Dispute amount must be an integer, got {amount!r}")
        if amount < 0:
            raise ValueError("Dispute amount must be non-negative")

        with self._lock:
            dispute_id = self._dispute_counter + 1
            # Validated before any value moves.
            dispute = Dispute(
                dispute_id=dispute_id,
                plaintiff=plaintiff,
                defendant=defendant,
                amount=amount,
                state=DisputeState.OPEN,
                created_at=self._host.current_height(),
            )

            self._host.transfer(amount, plaintiff, self._escrow.custody_account)

            self._disputes[dispute_id] = dispute
            self._escrow.lock(dispute_id, amount)
            self._evidence.open(dispute_id)
            self._dispute_counter = dispute_id

        logger.info(
            "Dispute %d created: plaintiff=%s defendant=%s amount=%d",
            dispute_id,
            plaintiff,
            defendant,
            amount,
        )
        return dispute_id

    def open_evidence_phase(self, dispute_id: int) -> None:
        caller = self._host.caller_identity()
        with self._lock:
            dispute = self._load(dispute_id)
            self._require_party(caller, dispute)
            self._require_state(dispute, DisputeState.OPEN)
            self._disputes[dispute_id] = dispute.model_copy(
                update={"state": DisputeState.EVIDENCE}
            )
        logger.info("Dispute %d entered evidence phase (by %s)", dispute_id, caller)

    def submit_evidence(self, dispute_id: int, digest: bytes, weight: int) -> int:
        """Attach a weighted evidence digest to *dispute_id*.

        Returns:
            The new per-dispute evidence id.
        """
        caller = self._host.caller_identity()
        with self._lock:
            dispute = self._load(dispute_id)
            self._require_party(caller, dispute)
            self._require_state(dispute, DisputeState.EVIDENCE)
            if (
                not isinstance(weight, int)
                or isinstance(weight, bool)
                or not settings.min_evidence_weight <= weight <= settings.max_evidence_weight
            ):
                raise InvalidEvidence(
                    f"Evidence weight {weight} outside "
                    f"[{settings.min_evidence_weight}, {settings.max_evidence_weight}]"
                )
            if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
                raise InvalidEvidence(f"Evidence digest must be {DIGEST_SIZE} bytes")

            evidence_id = self._evidence.append(
                dispute_id,
                caller,
                bytes(digest),
                weight,
                self._host.current_height(),
            )
            self._disputes[dispute_id] = dispute.model_copy(
                update={"evidence_count": dispute.evidence_count + 1}
            )
        return evidence_id

    def resolve_dispute(self, dispute_id: int) -> ResolutionResult:
        """Decide *dispute_id* with the basic model and pay out the escrow.

        The state transition is committed only after the escrow transfer
        succeeds; a failed transfer leaves the dispute and its escrow entry
        exactly as they were.
        """
        arbitrator = self._host.caller_identity()
        with self._lock:
            dispute = self._load(dispute_id)
            self._require_state(dispute, DisputeState.EVIDENCE)
            self._require(
                authorize(arbitrator, Capability.ARBITRATOR, registry=self._arbitrators)
            )

            prediction = self._predict(dispute)
            winner = dispute.plaintiff if prediction.outcome else dispute.defendant
            height = self._host.current_height()

            released = self._escrow.release(dispute_id, winner)

            resolved = dispute.model_copy(
                update={
                    "state": DisputeState.RESOLVED,
                    "resolved_at": height,
                    "outcome": prediction.outcome,
                    "confidence": prediction.confidence,
                    "appeal_deadline": height + self._appeal_window,
                }
            )
            self._disputes[dispute_id] = resolved

            record = ResolutionRecord(
                dispute_id=dispute_id,
                arbitrator=arbitrator,
                winner=winner,
                outcome=prediction.outcome,
                confidence=prediction.confidence,
                amount_released=released,
                evidence_count=resolved.evidence_count,
                resolved_at=height,
                appeal_deadline=resolved.appeal_deadline,
            )
            self._resolutions.append(record)

        logger.info(
            "Dispute %d resolved → %s (confidence: %d%%, released: %d)",
            dispute_id,
            winner,
            prediction.confidence,
            released,
        )
        if settings.audit_log_enabled:
            logger.info("Resolution record: %s", record.model_dump_json(indent=2))

        return ResolutionResult(winner=winner, confidence=prediction.confidence)

    def register_arbitrator(self, arbitrator: str) -> None:
        caller = self._host.caller_identity()
        with self._lock:
            self._arbitrators.register(caller, arbitrator)

    def advanced_dispute_prediction(self, dispute_id: int) -> PredictionReport:
        """Multi-factor diagnostic report for *dispute_id* at the current height."""
        with self._lock:
            dispute = self._load(dispute_id)
            return advanced_prediction(
                dispute, self._host.current_height(), self._host.digest
            )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def get_dispute(self, dispute_id: int) -> Dispute:
        with self._lock:
            return self._load(dispute_id)

    def get_evidence(self, dispute_id: int, evidence_id: int) -> EvidenceItem:
        with self._lock:
            self._load(dispute_id)
            item = self._evidence.get(dispute_id, evidence_id)
        if item is None:
            raise NotFound(f"Evidence {evidence_id} not found for dispute {dispute_id}")
        return item

    def evidence_count(self, dispute_id: int) -> int:
        with self._lock:
            self._load(dispute_id)
            return self._evidence.count(dispute_id)

    def escrow_balance(self, dispute_id: int) -> int | None:
        """Locked amount for *dispute_id*, or None once released."""
        with self._lock:
            return self._escrow.balance(dispute_id)

    def is_arbitrator(self, identity: str) -> bool:
        with self._lock:
            return self._arbitrators.is_authorized(identity)

    @property
    def dispute_count(self) -> int:
        with self._lock:
            return self._dispute_counter

    def resolution_log(self) -> list[ResolutionRecord]:
        with self._lock:
            return list(self._resolutions)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(self, dispute_id: int) -> Dispute:
        dispute = self._disputes.get(dispute_id)
        if dispute is None:
            raise NotFound(f"Dispute {dispute_id} not found")
        return dispute

    @staticmethod
    def _require(decision: Decision) -> None:
        if not decision.allowed:
            raise Unauthorized(decision.reason)

    def _require_party(self, caller: str, dispute: Dispute) -> None:
        self._require(
            authorize(
                caller,
                Capability.PARTY,
                parties=(dispute.plaintiff, dispute.defendant),
            )
        )

    @staticmethod
    def _require_state(dispute: Dispute, expected: DisputeState) -> None:
        if dispute.state != expected:
            raise InvalidState(
                f"Dispute {dispute.dispute_id} is {dispute.state.value}, "
                f"expected {expected.value}"
            )

    def _predict(self, dispute: Dispute) -> BasicPrediction:
        try:
            return basic_prediction(dispute, self._evidence)
        except PredictionFailure:
            raise
        except (ArithmeticError, ValueError) as exc:
            raise PredictionFailure(
                f"Scoring failed for dispute {dispute.dispute_id}: {exc}"
            ) from exc
