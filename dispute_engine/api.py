"""HTTP surface for the Dispute Engine.

Exposes every engine operation over FastAPI. The invoking principal is
taken from the ``X-Caller-Identity`` header and bound on the host ledger
for the duration of the call. Engine errors are mapped to HTTP statuses by
a single exception handler.
"""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dispute_engine import __version__
from dispute_engine.config import settings
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
from dispute_engine.host import HostLedger

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[DisputeEngineError], int] = {
    OwnerOnly: 403,
    Unauthorized: 403,
    NotFound: 404,
    InsufficientFunds: 402,
    InvalidState: 409,
    InvalidEvidence: 422,
    PredictionFailure: 500,
}

app = FastAPI(
    title="Dispute Engine",
    description="Escrowed dispute resolution with deterministic evidence scoring",
    version=__version__,
)

# Process-wide engine (production: the host ledger is the chain, not memory)
_engine = DisputeEngine(HostLedger())


def get_engine() -> DisputeEngine:
    return _engine


@app.exception_handler(DisputeEngineError)
async def _engine_error_handler(request: Request, exc: DisputeEngineError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), 400)
    logger.warning(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": str(exc)},
    )


def _caller(x_caller_identity: str | None) -> str:
    if not x_caller_identity:
        raise Unauthorized("Missing X-Caller-Identity header")
    return x_caller_identity


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CreateDisputeRequest(BaseModel):
    defendant: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class EvidenceRequest(BaseModel):
    digest: str = Field(..., description="Hex-encoded 32-byte content digest")
    weight: int


class ArbitratorRequest(BaseModel):
    identity: str = Field(..., min_length=1)


class CreditRequest(BaseModel):
    account: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class AdvanceRequest(BaseModel):
    blocks: int = Field(default=1, ge=0)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health(engine: DisputeEngine = Depends(get_engine)):
    return {
        "status": "ok",
        "service": "dispute-engine",
        "version": __version__,
        "height": engine.host.current_height(),
        "disputes": engine.dispute_count,
        "appeal_window": settings.appeal_window,
    }


@app.post("/disputes", status_code=201)
def create_dispute(
    req: CreateDisputeRequest,
    x_caller_identity: str | None = Header(default=None),
    engine: DisputeEngine = Depends(get_engine),
):
    with engine.host.as_caller(_caller(x_caller_identity)):
        dispute_id = engine.create_dispute(req.defendant, req.amount)
    return engine.get_dispute(dispute_id).model_dump(mode="json")


@app.get("/disputes/{dispute_id}")
def get_dispute(dispute_id: int, engine: DisputeEngine = Depends(get_engine)):
    return engine.get_dispute(dispute_id).model_dump(mode="json")


@app.post("/disputes/{dispute_id}/evidence-phase")
def open_evidence_phase(
    dispute_id: int,
    x_caller_identity: str | None = Header(default=None),
    engine: DisputeEngine = Depends(get_engine),
):
    with engine.host.as_caller(_caller(x_caller_identity)):
        engine.open_evidence_phase(dispute_id)
    return engine.get_dispute(dispute_id).model_dump(mode="json")


@app.post("/disputes/{dispute_id}/evidence", status_code=201)
def submit_evidence(
    dispute_id: int,
    req: EvidenceRequest,
    x_caller_identity: str | None = Header(default=None),
    engine: DisputeEngine = Depends(get_engine),
):
    # Undecodable hex is left to the engine, which rejects it after the
    # party and state checks.
    digest: bytes | None
    try:
        digest = bytes.fromhex(req.digest)
    except ValueError:
        digest = None

    with engine.host.as_caller(_caller(x_caller_identity)):
        evidence_id = engine.submit_evidence(dispute_id, digest, req.weight)
    return {"dispute_id": dispute_id, "evidence_id": evidence_id}


@app.get("/disputes/{dispute_id}/evidence/{evidence_id}")
def get_evidence(
    dispute_id: int,
    evidence_id: int,
    engine: DisputeEngine = Depends(get_engine),
):
    return engine.get_evidence(dispute_id, evidence_id).model_dump(mode="json")


@app.post("/disputes/{dispute_id}/resolve")
def resolve_dispute(
    dispute_id: int,
    x_caller_identity: str | None = Header(default=None),
    engine: DisputeEngine = Depends(get_engine),
):
    with engine.host.as_caller(_caller(x_caller_identity)):
        result = engine.resolve_dispute(dispute_id)
    return result.model_dump(mode="json")


@app.get("/disputes/{dispute_id}/prediction")
def advanced_dispute_prediction(dispute_id: int, engine: DisputeEngine = Depends(get_engine)):
    return engine.advanced_dispute_prediction(dispute_id).model_dump(mode="json")


@app.post("/arbitrators")
def register_arbitrator(
    req: ArbitratorRequest,
    x_caller_identity: str | None = Header(default=None),
    engine: DisputeEngine = Depends(get_engine),
):
    with engine.host.as_caller(_caller(x_caller_identity)):
        engine.register_arbitrator(req.identity)
    return {"identity": req.identity, "authorized": True}


@app.get("/resolutions")
def list_resolutions(
    limit: int = 20,
    offset: int = 0,
    engine: DisputeEngine = Depends(get_engine),
):
    """List resolution audit records, oldest first."""
    records = engine.resolution_log()
    return {
        "resolutions": [r.model_dump(mode="json") for r in records[offset : offset + limit]],
        "total": len(records),
    }


# ---------------------------------------------------------------------------
# Development ledger controls
# ---------------------------------------------------------------------------


def _require_dev_ledger() -> None:
    if not settings.dev_ledger_enabled:
        raise HTTPException(status_code=404, detail="Not Found")


@app.post("/ledger/credit", dependencies=[Depends(_require_dev_ledger)])
def credit_account(req: CreditRequest, engine: DisputeEngine = Depends(get_engine)):
    balance = engine.host.credit(req.account, req.amount)
    return {"account": req.account, "balance": balance}


@app.post("/ledger/advance", dependencies=[Depends(_require_dev_ledger)])
def advance_height(req: AdvanceRequest, engine: DisputeEngine = Depends(get_engine)):
    return {"height": engine.host.advance(req.blocks)}


@app.get("/ledger/accounts/{account}", dependencies=[Depends(_require_dev_ledger)])
def account_balance(account: str, engine: DisputeEngine = Depends(get_engine)):
    return {"account": account, "balance": engine.host.balance_of(account)}
