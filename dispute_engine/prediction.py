"""Deterministic scoring heuristics.

Two independent, read-only models over the same dispute and evidence data:

- ``basic_prediction`` decides the outcome at resolution time.
- ``advanced_prediction`` builds a diagnostic multi-factor report that is
  exposed directly and never used for resolution.

Both use truncating integer arithmetic throughout. Neither mutates state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from dispute_engine.errors import PredictionFailure
from dispute_engine.evidence import EvidenceRegistry
from dispute_engine.schemas import (
    BasicPrediction,
    Dispute,
    EvidenceItem,
    PredictionReport,
    RecommendationStrength,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 50

# Multi-factor caps and scales
EVIDENCE_POINTS_PER_ITEM = 8
EVIDENCE_QUALITY_CAP = 40
COMPLEXITY_AMOUNT_UNIT = 1000
COMPLEXITY_CAP = 30
URGENCY_AGE_UNIT = 10
URGENCY_CAP = 20
PATTERN_MODULUS = 11
CONFIDENCE_FLOOR = 50
CONFIDENCE_CAP = 95
HIGH_APPEAL_RISK = 80
LOW_APPEAL_RISK = 20
APPEAL_RISK_CONFIDENCE_THRESHOLD = 70
ECONOMIC_AMOUNT_UNIT = 10000
DECAY_AGE_LIMIT = 1000
DECAY_FLOOR = 50
DECAY_AGE_UNIT = 20
HIGH_RECOMMENDATION_THRESHOLD = 80
OUTCOME_THRESHOLD = 50


# ---------------------------------------------------------------------------
# Basic model
# ---------------------------------------------------------------------------


def _attributable_evidence(
    evidence: EvidenceRegistry, dispute: Dispute, party: str
) -> list[EvidenceItem]:
    """Evidence credited to *party*.

    Only ever yields the dispute's first item, whatever the party, so both
    sides always score the same.
    """
    item = next(evidence.items(dispute.dispute_id), None)
    if item is None or item.evidence_id != 1:
        raise PredictionFailure(
            f"Dispute {dispute.dispute_id} reports {dispute.evidence_count} "
            "evidence item(s) but item 1 is missing"
        )
    return [item]


def _score(items: list[EvidenceItem]) -> int:
    total = 0
    for item in items:
        total += item.weight
    return total


def basic_prediction(dispute: Dispute, evidence: EvidenceRegistry) -> BasicPrediction:
    """Outcome and confidence used to resolve *dispute*.

    No evidence, or nothing attributable, defaults to the plaintiff at 50.
    Otherwise confidence is the larger party score as a percentage of both.
    """
    if dispute.evidence_count == 0:
        return BasicPrediction(outcome=True, confidence=DEFAULT_CONFIDENCE)

    plaintiff_score = _score(_attributable_evidence(evidence, dispute, dispute.plaintiff))
    defendant_score = _score(_attributable_evidence(evidence, dispute, dispute.defendant))
    combined = plaintiff_score + defendant_score
    if combined == 0:
        return BasicPrediction(outcome=True, confidence=DEFAULT_CONFIDENCE)

    confidence = max(plaintiff_score, defendant_score) * 100 // combined
    logger.debug(
        "Basic prediction for dispute %d: plaintiff=%d defendant=%d confidence=%d",
        dispute.dispute_id,
        plaintiff_score,
        defendant_score,
        confidence,
    )
    return BasicPrediction(outcome=plaintiff_score > defendant_score, confidence=confidence)


# ---------------------------------------------------------------------------
# Multi-factor report
# ---------------------------------------------------------------------------


def _pattern_score(plaintiff: str, case_age: int, digest: Callable[[bytes], bytes]) -> int:
    seed = int.from_bytes(digest(plaintiff.encode("utf-8"))[:4], "big")
    return (seed + case_age) % PATTERN_MODULUS


def _evidence_decay(case_age: int) -> int:
    if case_age > DECAY_AGE_LIMIT:
        return DECAY_FLOOR
    if case_age > 0:
        return 100 - case_age // DECAY_AGE_UNIT
    return 100


def advanced_prediction(
    dispute: Dispute,
    height: int,
    digest: Callable[[bytes], bytes],
) -> PredictionReport:
    """Build the multi-factor diagnostic report for *dispute* at *height*."""
    case_age = max(height - dispute.created_at, 0)
    count = dispute.evidence_count
    amount = dispute.amount

    evidence_quality = min(count * EVIDENCE_POINTS_PER_ITEM, EVIDENCE_QUALITY_CAP)
    complexity = min(amount // COMPLEXITY_AMOUNT_UNIT, COMPLEXITY_CAP)
    urgency = min(case_age // URGENCY_AGE_UNIT, URGENCY_CAP)
    pattern = _pattern_score(dispute.plaintiff, case_age, digest)
    total = evidence_quality + complexity + urgency + pattern

    confidence_level = min(
        CONFIDENCE_FLOOR + evidence_quality * 45 // EVIDENCE_QUALITY_CAP, CONFIDENCE_CAP
    )
    # Scaled by 100/100, so this is the total score itself.
    win_probability = total * 100 // 100
    appeal_risk = (
        HIGH_APPEAL_RISK
        if confidence_level < APPEAL_RISK_CONFIDENCE_THRESHOLD
        else LOW_APPEAL_RISK
    )
    behavioral = (count + amount) * case_age % 100
    economic = amount // ECONOMIC_AMOUNT_UNIT
    decay = _evidence_decay(case_age)

    final_score = (
        win_probability * 40 // 100
        + confidence_level * 30 // 100
        + behavioral * 20 // 100
        + decay * 10 // 100
    )

    return PredictionReport(
        dispute_id=dispute.dispute_id,
        case_age=case_age,
        evidence_quality_score=evidence_quality,
        complexity_score=complexity,
        urgency_score=urgency,
        pattern_score=pattern,
        total_prediction_score=total,
        confidence_level=confidence_level,
        plaintiff_win_probability=win_probability,
        appeal_risk=appeal_risk,
        behavioral_pattern=behavioral,
        economic_factor=economic,
        evidence_decay=decay,
        final_score=final_score,
        recommendation_strength=(
            RecommendationStrength.HIGH
            if confidence_level > HIGH_RECOMMENDATION_THRESHOLD
            else RecommendationStrength.MODERATE
        ),
        predicted_outcome=final_score > OUTCOME_THRESHOLD,
    )
