"""Pydantic models for disputes, evidence, predictions, and audit records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

DIGEST_SIZE = 32


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DisputeState(str, Enum):
    OPEN = "open"
    EVIDENCE = "evidence"
    RESOLVED = "resolved"
    # Declared for the data model; no operation transitions into it.
    APPEALED = "appealed"


class RecommendationStrength(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class Dispute(BaseModel):
    """A case between a plaintiff and a defendant with an escrowed amount.

    Records are frozen. The engine commits a change by storing a new copy
    built with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    dispute_id: int = Field(..., ge=1)
    plaintiff: str
    defendant: str
    amount: int = Field(..., ge=0)
    state: DisputeState = DisputeState.OPEN
    created_at: int = Field(..., ge=0, description="Host height at creation")
    resolved_at: int | None = None
    outcome: bool | None = Field(default=None, description="True when the plaintiff prevails")
    confidence: int | None = Field(default=None, ge=0, le=100)
    evidence_count: int = 0
    appeal_deadline: int | None = None


class EvidenceItem(BaseModel):
    """An immutable, weighted submission attached to a dispute."""

    model_config = ConfigDict(frozen=True)

    dispute_id: int
    evidence_id: int = Field(..., ge=1)
    submitter: str
    digest: bytes = Field(..., min_length=DIGEST_SIZE, max_length=DIGEST_SIZE)
    weight: int = Field(..., ge=1, le=10)
    submitted_at: int

    @field_serializer("digest", when_used="json")
    def _digest_hex(self, digest: bytes) -> str:
        return digest.hex()


# ---------------------------------------------------------------------------
# Prediction results
# ---------------------------------------------------------------------------


class BasicPrediction(BaseModel):
    outcome: bool
    confidence: int = Field(..., ge=0, le=100)


class PredictionReport(BaseModel):
    """Diagnostic multi-factor report. Read-only; never used for resolution."""

    dispute_id: int
    case_age: int
    evidence_quality_score: int = Field(..., ge=0, le=40)
    complexity_score: int = Field(..., ge=0, le=30)
    urgency_score: int = Field(..., ge=0, le=20)
    pattern_score: int = Field(..., ge=0, le=10)
    total_prediction_score: int
    confidence_level: int = Field(..., ge=50, le=95)
    plaintiff_win_probability: int
    appeal_risk: int
    behavioral_pattern: int
    economic_factor: int
    evidence_decay: int
    final_score: int
    recommendation_strength: RecommendationStrength
    predicted_outcome: bool


class ResolutionResult(BaseModel):
    """Returned to the arbitrator by ``resolve_dispute``."""

    winner: str
    confidence: int = Field(..., ge=0, le=100)


# ---------------------------------------------------------------------------
# Audit record (kept for transparency)
# ---------------------------------------------------------------------------


class ResolutionRecord(BaseModel):
    """Full audit trail for a resolution."""

    dispute_id: int
    arbitrator: str
    winner: str
    outcome: bool
    confidence: int
    amount_released: int
    evidence_count: int
    resolved_at: int
    appeal_deadline: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
