"""Validation Join Rule — decides the exchange's fate from both validation slots.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Only an exchange in pending-validation is ever decided; anything else is STALE
    - Success requires unanimity: both slots valid. Any single invalid slot vetoes
    - A decision never depends on which result event triggered the evaluation

Design Decisions:
    - Decision re-derived from a store snapshot on every call, no per-key memory:
      survives restarts and multiple coordinator instances
    - Returns an Enum (not a new state): the shell owns the conditional write
"""

from enum import Enum

from bookswap.core.domain_types import (
    ExchangeSnapshot, ExchangeState, ValidationStatus,
)


class JoinDecision(str, Enum):
    """Outcome of evaluating one snapshot."""
    STALE = "stale"
    AWAITING = "awaiting"
    ACCEPT = "accept"
    REJECT = "reject"


_TARGET_STATES = {
    JoinDecision.ACCEPT: ExchangeState.REQUESTED,
    JoinDecision.REJECT: ExchangeState.REJECTED,
}


def decide(snapshot: ExchangeSnapshot) -> JoinDecision:
    """Apply the AND/OR join to a snapshot of the exchange."""
    if snapshot.state is not ExchangeState.PENDING_VALIDATION:
        return JoinDecision.STALE
    slots = (snapshot.user_validation, snapshot.book_validation)
    if ValidationStatus.PENDING in slots:
        return JoinDecision.AWAITING
    if all(s is ValidationStatus.VALID for s in slots):
        return JoinDecision.ACCEPT
    return JoinDecision.REJECT


def target_state(decision: JoinDecision) -> ExchangeState | None:
    """State to transition to, or None when the decision mutates nothing."""
    return _TARGET_STATES.get(decision)
