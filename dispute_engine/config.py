"""Configuration for the Dispute Engine.

All settings are driven by environment variables with sensible defaults.
The owner identity is fixed at deployment and is the only principal that
may register arbitrators.
"""

from __future__ import annotations

import os


def _get_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return int(val)


def _get_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


class EngineSettings:
    # --- Deployment ---
    owner_identity: str = os.getenv("DISPUTE_ENGINE_OWNER", "")
    # Account holding escrowed value between creation and resolution.
    custody_account: str = os.getenv(
        "DISPUTE_ENGINE_CUSTODY_ACCOUNT", "dispute-engine-custody"
    )

    # --- Lifecycle policy ---
    # Heights added to the resolution height to form the appeal deadline
    # (144 blocks, roughly one day).
    appeal_window: int = _get_int("DISPUTE_ENGINE_APPEAL_WINDOW", 144)
    min_evidence_weight: int = 1
    max_evidence_weight: int = 10

    # If True, log every resolution audit record as JSON.
    audit_log_enabled: bool = _get_bool("DISPUTE_ENGINE_AUDIT_LOG", True)

    # --- HTTP surface ---
    host: str = os.getenv("DISPUTE_ENGINE_HOST", "127.0.0.1")
    port: int = _get_int("DISPUTE_ENGINE_PORT", 3200)
    # Exposes /ledger/* endpoints for funding accounts and mining heights
    # against the in-memory host ledger. Never enable in production.
    dev_ledger_enabled: bool = _get_bool("DISPUTE_ENGINE_DEV_LEDGER", False)


settings = EngineSettings()
