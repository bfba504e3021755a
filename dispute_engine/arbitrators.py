"""Arbitrator registry and the authorization policy.

Authorization is decided by ``authorize``, a pure function of the caller,
the capability the action needs, and the facts it needs to check. The
engine raises on a denied decision; the policy itself never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from dispute_engine.errors import OwnerOnly

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    OWNER = "owner"
    PARTY = "party"
    ARBITRATOR = "arbitrator"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


def authorize(
    caller: str,
    capability: Capability,
    *,
    owner: str = "",
    parties: tuple[str, ...] = (),
    registry: ArbitratorRegistry | None = None,
) -> Decision:
    """Decide whether *caller* holds *capability*."""
    if capability is Capability.OWNER:
        if owner and caller == owner:
            return Decision(True)
        return Decision(False, f"{caller} is not the owner")

    if capability is Capability.PARTY:
        if caller in parties:
            return Decision(True)
        return Decision(False, f"{caller} is not a party to this dispute")

    if capability is Capability.ARBITRATOR:
        if registry is not None and registry.is_authorized(caller):
            return Decision(True)
        return Decision(False, f"{caller} is not a registered arbitrator")

    return Decision(False, f"Unknown capability: {capability!r}")


class ArbitratorRegistry:
    """Identity to authorized flag. Entries are never removed."""

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._authorized: dict[str, bool] = {}

    def register(self, caller: str, identity: str) -> None:
        decision = authorize(caller, Capability.OWNER, owner=self._owner)
        if not decision.allowed:
            raise OwnerOnly(decision.reason)
        if not self._authorized.get(identity):
            logger.info("Arbitrator registered: %s", identity)
        self._authorized[identity] = True

    def is_authorized(self, identity: str) -> bool:
        return self._authorized.get(identity, False)
