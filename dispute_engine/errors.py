"""Error taxonomy for the Dispute Engine.

Every failure is raised synchronously to the caller of the failing
operation. The engine never retries; a caller that retries must expect
preconditions to be re-checked from scratch.
"""

from __future__ import annotations


class DisputeEngineError(Exception):
    """Base class for all engine errors. ``code`` is stable across releases."""

    code = "engine_error"


class OwnerOnly(DisputeEngineError):
    """A non-owner attempted an owner-only action."""

    code = "owner_only"


class NotFound(DisputeEngineError):
    """The referenced dispute or evidence item does not exist."""

    code = "not_found"


class Unauthorized(DisputeEngineError):
    """The caller lacks the role the action requires."""

    code = "unauthorized"


class InvalidState(DisputeEngineError):
    """The action was attempted outside its required lifecycle state."""

    code = "invalid_state"


class InsufficientFunds(DisputeEngineError):
    """A value transfer could not be completed."""

    code = "insufficient_funds"


class InvalidEvidence(DisputeEngineError):
    """Evidence weight outside the accepted range."""

    code = "invalid_evidence"


class PredictionFailure(DisputeEngineError):
    """The scoring step could not produce a result."""

    code = "prediction_failure"
