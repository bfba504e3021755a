"""Dispute Engine: escrowed dispute resolution with deterministic evidence scoring."""

__version__ = "0.1.0"

from dispute_engine.arbitrators import ArbitratorRegistry, Capability, Decision, authorize
from dispute_engine.config import EngineSettings, settings
from dispute_engine.engine import DisputeEngine
from dispute_engine.errors import (
    DisputeEngineError,
    InsufficientFunds,
    InvalidEvidence,
    InvalidState,
    NotFound,
    OwnerOnly,
    PredictionFailure,
    Unauthorized,
)
from dispute_engine.escrow import EscrowLedger
from dispute_engine.evidence import EvidenceRegistry
from dispute_engine.host import HostLedger
from dispute_engine.prediction import advanced_prediction, basic_prediction
from dispute_engine.schemas import (
    BasicPrediction,
    Dispute,
    DisputeState,
    EvidenceItem,
    PredictionReport,
    RecommendationStrength,
    ResolutionRecord,
    ResolutionResult,
)

__all__ = [
    # Lifecycle
    "DisputeEngine",
    "HostLedger",
    "settings",
    "EngineSettings",
    # Components
    "EscrowLedger",
    "EvidenceRegistry",
    "ArbitratorRegistry",
    "Capability",
    "Decision",
    "authorize",
    "basic_prediction",
    "advanced_prediction",
    # Records
    "BasicPrediction",
    "Dispute",
    "DisputeState",
    "EvidenceItem",
    "PredictionReport",
    "RecommendationStrength",
    "ResolutionRecord",
    "ResolutionResult",
    # Errors
    "DisputeEngineError",
    "InsufficientFunds",
    "InvalidEvidence",
    "InvalidState",
    "NotFound",
    "OwnerOnly",
    "PredictionFailure",
    "Unauthorized",
]
