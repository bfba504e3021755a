"""Tests for the dispute lifecycle manager.

All tests run against an in-memory host ledger; no network or chain.
"""

from __future__ import annotations

import hashlib
import threading
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from dispute_engine.engine import DisputeEngine
from dispute_engine.errors import (
    InsufficientFunds,
    InvalidEvidence,
    InvalidState,
    NotFound,
    OwnerOnly,
    PredictionFailure,
    Unauthorized,
)
from dispute_engine.host import HostLedger
from dispute_engine.schemas import DisputeState

START_HEIGHT = 100


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def host():
    ledger = HostLedger(start_height=START_HEIGHT)
    ledger.credit("alice", 5000)
    ledger.credit("bob", 500)
    return ledger


@pytest.fixture
def engine(host):
    eng = DisputeEngine(host, owner="owner", custody_account="custody", appeal_window=144)
    with host.as_caller("owner"):
        eng.register_arbitrator("arb")
    return eng


def _digest(text: str) -> bytes:
    return hashlib.sha256(text.encode()).digest()


def _open_dispute(engine: DisputeEngine, amount: int = 1000) -> int:
    with engine.host.as_caller("alice"):
        return engine.create_dispute("bob", amount)


def _in_evidence(engine: DisputeEngine, amount: int = 1000) -> int:
    dispute_id = _open_dispute(engine, amount)
    with engine.host.as_caller("alice"):
        engine.open_evidence_phase(dispute_id)
    return dispute_id


# ---------------------------------------------------------------------------
# create_dispute
# ---------------------------------------------------------------------------


class TestCreateDispute:
    def test_first_dispute_gets_id_one(self, engine, host):
        dispute_id = _open_dispute(engine)
        dispute = engine.get_dispute(dispute_id)

        assert dispute_id == 1
        assert dispute.plaintiff == "alice"
        assert dispute.defendant == "bob"
        assert dispute.amount == 1000
        assert dispute.state == DisputeState.OPEN
        assert dispute.created_at == START_HEIGHT
        assert dispute.evidence_count == 0
        assert dispute.outcome is None
        assert dispute.confidence is None
        assert dispute.resolved_at is None
        assert dispute.appeal_deadline is None

    def test_ids_strictly_increase(self, engine):
        ids = [_open_dispute(engine, 100) for _ in range(3)]
        assert ids == [1, 2, 3]
        assert engine.dispute_count == 3

    def test_funds_move_into_custody(self, engine, host):
        dispute_id = _open_dispute(engine)
        assert engine.escrow_balance(dispute_id) == 1000
        assert host.balance_of("alice") == 4000
        assert host.balance_of("custody") == 1000

    def test_insufficient_funds_leaves_no_record(self, engine, host):
        with host.as_caller("carol"):
            with pytest.raises(InsufficientFunds):
                engine.create_dispute("bob", 10)

        assert engine.dispute_count == 0
        with pytest.raises(NotFound):
            engine.get_dispute(1)
        assert engine.escrow_balance(1) is None

        # The failed attempt did not consume an id.
        assert _open_dispute(engine) == 1

    def test_zero_amount_allowed(self, engine, host):
        dispute_id = _open_dispute(engine, 0)
        assert engine.escrow_balance(dispute_id) == 0
        assert host.balance_of("alice") == 5000

    def test_negative_amount_rejected(self, engine, host):
        with host.as_caller("alice"):
            with pytest.raises(ValueError):
                engine.create_dispute("bob", -1)
        assert engine.dispute_count == 0

    def test_invalid_defendant_moves_no_funds(self, engine, host):
        with host.as_caller("alice"):
            with pytest.raises(ValidationError):
                engine.create_dispute(None, 1000)

        assert host.balance_of("alice") == 5000
        assert host.balance_of("custody") == 0
        assert engine.dispute_count == 0
        assert engine.escrow_balance(1) is None

    @pytest.mark.parametrize("amount", [10.5, "1000", True])
    def test_non_integer_amount_rejected(self, engine, host, amount):
        with host.as_caller("alice"):
            with pytest.raises(ValueError):
                engine.create_dispute("bob", amount)

        assert host.balance_of("alice") == 5000
        assert host.balance_of("custody") == 0
        assert engine.dispute_count == 0

    def test_requires_caller_identity(self, engine):
        with pytest.raises(Unauthorized):
            engine.create_dispute("bob", 10)

    def test_concurrent_creates_get_unique_ids(self, engine, host):
        callers = [f"p{i}" for i in range(8)]
        for caller in callers:
            host.credit(caller, 100)
        ids: list[int] = []
        ids_lock = threading.Lock()

        def worker(caller: str) -> None:
            with host.as_caller(caller):
                dispute_id = engine.create_dispute("bob", 100)
            with ids_lock:
                ids.append(dispute_id)

        threads = [threading.Thread(target=worker, args=(c,)) for c in callers]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(ids) == list(range(1, len(callers) + 1))
        assert host.balance_of("custody") == 100 * len(callers)


# ---------------------------------------------------------------------------
# open_evidence_phase
# ---------------------------------------------------------------------------


class TestOpenEvidencePhase:
    def test_plaintiff_opens(self, engine):
        dispute_id = _in_evidence(engine)
        assert engine.get_dispute(dispute_id).state == DisputeState.EVIDENCE

    def test_defendant_opens(self, engine, host):
        dispute_id = _open_dispute(engine)
        with host.as_caller("bob"):
            engine.open_evidence_phase(dispute_id)
        assert engine.get_dispute(dispute_id).state == DisputeState.EVIDENCE

    def test_only_state_changes(self, engine):
        dispute_id = _open_dispute(engine)
        before = engine.get_dispute(dispute_id)
        with engine.host.as_caller("alice"):
            engine.open_evidence_phase(dispute_id)
        after = engine.get_dispute(dispute_id)
        assert after.model_dump(exclude={"state"}) == before.model_dump(exclude={"state"})

    def test_outsider_rejected(self, engine, host):
        dispute_id = _open_dispute(engine)
        with host.as_caller("mallory"):
            with pytest.raises(Unauthorized):
                engine.open_evidence_phase(dispute_id)
        assert engine.get_dispute(dispute_id).state == DisputeState.OPEN

    def test_missing_dispute(self, engine, host):
        with host.as_caller("alice"):
            with pytest.raises(NotFound):
                engine.open_evidence_phase(99)

    def test_twice_is_invalid_state(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("bob"):
            with pytest.raises(InvalidState):
                engine.open_evidence_phase(dispute_id)


# ---------------------------------------------------------------------------
# submit_evidence
# ---------------------------------------------------------------------------


class TestSubmitEvidence:
    def test_sequential_ids_and_count(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            first = engine.submit_evidence(dispute_id, _digest("invoice"), 7)
        host.advance(3)
        with host.as_caller("bob"):
            second = engine.submit_evidence(dispute_id, _digest("receipt"), 4)

        assert (first, second) == (1, 2)
        assert engine.get_dispute(dispute_id).evidence_count == 2
        assert engine.evidence_count(dispute_id) == 2

        item = engine.get_evidence(dispute_id, 2)
        assert item.submitter == "bob"
        assert item.weight == 4
        assert item.digest == _digest("receipt")
        assert item.submitted_at == START_HEIGHT + 3

    def test_evidence_ids_are_per_dispute(self, engine, host):
        first = _in_evidence(engine)
        second = _in_evidence(engine)
        with host.as_caller("alice"):
            engine.submit_evidence(first, _digest("a"), 5)
            engine.submit_evidence(first, _digest("b"), 5)
            assert engine.submit_evidence(second, _digest("c"), 5) == 1

    @pytest.mark.parametrize("weight", [1, 10])
    def test_boundary_weights_accepted(self, engine, host, weight):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            assert engine.submit_evidence(dispute_id, _digest("x"), weight) == 1

    @pytest.mark.parametrize("weight", [0, 11, -3])
    def test_out_of_range_weight_rejected(self, engine, host, weight):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            with pytest.raises(InvalidEvidence):
                engine.submit_evidence(dispute_id, _digest("x"), weight)
        assert engine.get_dispute(dispute_id).evidence_count == 0

    @pytest.mark.parametrize("weight", [5.5, "5", True])
    def test_non_integer_weight_rejected(self, engine, host, weight):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            with pytest.raises(InvalidEvidence):
                engine.submit_evidence(dispute_id, _digest("x"), weight)
        assert engine.evidence_count(dispute_id) == 0

    def test_wrong_digest_size_rejected(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            with pytest.raises(InvalidEvidence):
                engine.submit_evidence(dispute_id, b"short", 5)

    def test_outsider_rejected(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("mallory"):
            with pytest.raises(Unauthorized):
                engine.submit_evidence(dispute_id, _digest("x"), 5)

    def test_requires_evidence_state(self, engine, host):
        dispute_id = _open_dispute(engine)
        with host.as_caller("alice"):
            with pytest.raises(InvalidState):
                engine.submit_evidence(dispute_id, _digest("x"), 5)

    def test_missing_evidence_item(self, engine):
        dispute_id = _in_evidence(engine)
        with pytest.raises(NotFound):
            engine.get_evidence(dispute_id, 1)


# ---------------------------------------------------------------------------
# resolve_dispute
# ---------------------------------------------------------------------------


class TestResolveDispute:
    def test_no_evidence_favours_plaintiff(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("arb"):
            result = engine.resolve_dispute(dispute_id)

        assert result.winner == "alice"
        assert result.confidence == 50
        dispute = engine.get_dispute(dispute_id)
        assert dispute.outcome is True
        assert host.balance_of("alice") == 5000

    def test_tied_scores_favour_defendant(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            engine.submit_evidence(dispute_id, _digest("strong"), 10)
        with host.as_caller("bob"):
            engine.submit_evidence(dispute_id, _digest("weak"), 1)
        with host.as_caller("arb"):
            result = engine.resolve_dispute(dispute_id)

        assert result.winner == "bob"
        assert result.confidence == 50

    def test_escrow_moves_exactly_once(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            engine.submit_evidence(dispute_id, _digest("x"), 3)
        with host.as_caller("arb"):
            engine.resolve_dispute(dispute_id)

        assert engine.escrow_balance(dispute_id) is None
        assert host.balance_of("bob") == 500 + 1000
        assert host.balance_of("custody") == 0

    def test_records_resolution_fields(self, engine, host):
        dispute_id = _in_evidence(engine)
        host.advance(20)
        with host.as_caller("arb"):
            engine.resolve_dispute(dispute_id)

        dispute = engine.get_dispute(dispute_id)
        assert dispute.state == DisputeState.RESOLVED
        assert dispute.resolved_at == START_HEIGHT + 20
        assert dispute.appeal_deadline == START_HEIGHT + 20 + 144
        assert dispute.confidence == 50

    def test_requires_registered_arbitrator(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            with pytest.raises(Unauthorized):
                engine.resolve_dispute(dispute_id)
        assert engine.escrow_balance(dispute_id) == 1000

    def test_requires_evidence_state(self, engine, host):
        dispute_id = _open_dispute(engine)
        with host.as_caller("arb"):
            with pytest.raises(InvalidState):
                engine.resolve_dispute(dispute_id)

    def test_resolved_dispute_is_final(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("arb"):
            engine.resolve_dispute(dispute_id)
            with pytest.raises(InvalidState):
                engine.resolve_dispute(dispute_id)
        with host.as_caller("alice"):
            with pytest.raises(InvalidState):
                engine.submit_evidence(dispute_id, _digest("late"), 5)
        assert host.balance_of("alice") == 5000

    def test_missing_dispute(self, engine, host):
        with host.as_caller("arb"):
            with pytest.raises(NotFound):
                engine.resolve_dispute(7)

    def test_failed_transfer_changes_nothing(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("alice"):
            engine.submit_evidence(dispute_id, _digest("x"), 6)

        with patch.object(host, "transfer", side_effect=InsufficientFunds("custody drained")):
            with host.as_caller("arb"):
                with pytest.raises(InsufficientFunds):
                    engine.resolve_dispute(dispute_id)

        dispute = engine.get_dispute(dispute_id)
        assert dispute.state == DisputeState.EVIDENCE
        assert dispute.outcome is None
        assert dispute.confidence is None
        assert engine.escrow_balance(dispute_id) == 1000
        assert engine.resolution_log() == []

    @patch("dispute_engine.engine.basic_prediction")
    def test_scoring_error_becomes_prediction_failure(self, mock_predict, engine, host):
        mock_predict.side_effect = ZeroDivisionError("division by zero")
        dispute_id = _in_evidence(engine)
        with host.as_caller("arb"):
            with pytest.raises(PredictionFailure):
                engine.resolve_dispute(dispute_id)
        assert engine.escrow_balance(dispute_id) == 1000

    def test_audit_record_appended(self, engine, host):
        dispute_id = _in_evidence(engine)
        with host.as_caller("arb"):
            engine.resolve_dispute(dispute_id)

        [record] = engine.resolution_log()
        assert record.dispute_id == dispute_id
        assert record.arbitrator == "arb"
        assert record.winner == "alice"
        assert record.amount_released == 1000


# ---------------------------------------------------------------------------
# register_arbitrator
# ---------------------------------------------------------------------------


class TestRegisterArbitrator:
    def test_owner_registers(self, engine, host):
        with host.as_caller("owner"):
            engine.register_arbitrator("judge")
        assert engine.is_arbitrator("judge")

    def test_idempotent(self, engine, host):
        with host.as_caller("owner"):
            engine.register_arbitrator("arb")
        assert engine.is_arbitrator("arb")

    def test_non_owner_rejected(self, engine, host):
        with host.as_caller("arb"):
            with pytest.raises(OwnerOnly):
                engine.register_arbitrator("mallory")
        assert not engine.is_arbitrator("mallory")

    def test_unconfigured_owner_rejects_everyone(self, host):
        eng = DisputeEngine(host, owner="", custody_account="custody")
        with host.as_caller("anyone"):
            with pytest.raises(OwnerOnly):
                eng.register_arbitrator("anyone")


# ---------------------------------------------------------------------------
# advanced_dispute_prediction
# ---------------------------------------------------------------------------


class TestAdvancedDisputePrediction:
    def test_report_reads_current_height(self, engine, host):
        dispute_id = _in_evidence(engine, 5000)
        host.advance(40)
        report = engine.advanced_dispute_prediction(dispute_id)

        assert report.dispute_id == dispute_id
        assert report.case_age == 40
        assert report.complexity_score == 5
        assert report.urgency_score == 4

    def test_report_does_not_mutate(self, engine, host):
        dispute_id = _in_evidence(engine)
        before = engine.get_dispute(dispute_id)
        engine.advanced_dispute_prediction(dispute_id)
        assert engine.get_dispute(dispute_id) == before
        assert engine.escrow_balance(dispute_id) == 1000

    def test_missing_dispute(self, engine):
        with pytest.raises(NotFound):
            engine.advanced_dispute_prediction(3)


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_full_lifecycle(self, engine, host):
        with host.as_caller("alice"):
            dispute_id = engine.create_dispute("bob", 1000)
            assert dispute_id == 1
            assert engine.get_dispute(1).state == DisputeState.OPEN

            engine.open_evidence_phase(1)
            assert engine.get_dispute(1).state == DisputeState.EVIDENCE

            assert engine.submit_evidence(1, _digest("delivery-log"), 7) == 1

        host.advance(10)
        resolution_height = host.current_height()
        with host.as_caller("arb"):
            result = engine.resolve_dispute(1)

        assert result.confidence == 50
        assert result.winner == "bob"
        assert host.balance_of("bob") == 500 + 1000
        assert host.balance_of("alice") == 4000
        assert engine.escrow_balance(1) is None

        dispute = engine.get_dispute(1)
        assert dispute.state == DisputeState.RESOLVED
        assert dispute.appeal_deadline == resolution_height + 144
