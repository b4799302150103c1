"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - ExchangeId wraps the UUID correlation key — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - ExchangeSnapshot is immutable; it is what the store read, nothing more

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to DB string columns without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

ExchangeId = NewType("ExchangeId", UUID)
SubjectId = NewType("SubjectId", str)


# ─── Enums ───────────────────────────────────────────────────────

class FactType(str, Enum):
    """The independent preconditions validated before an exchange proceeds."""
    USER = "user"
    BOOK = "book"


class ValidationStatus(str, Enum):
    """Per-fact validation slot — maps to validation_status_* columns."""
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


class ExchangeState(str, Enum):
    """Exchange lifecycle — maps to DB `state` column.

    The saga only owns PENDING_VALIDATION -> REQUESTED | REJECTED.
    """
    PENDING_VALIDATION = "pending-validation"
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    RETURNED = "returned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class HandlerOutcome(str, Enum):
    """How the transport settles a delivered message."""
    ACK = "ack"
    REQUEUE = "requeue"
    DISCARD = "discard"


class SlotWrite(str, Enum):
    """Result of a conditional slot write."""
    WRITTEN = "written"
    ALREADY_SET = "already_set"
    NOT_FOUND = "not_found"


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ExchangeSnapshot:
    """Point-in-time view of the fields the saga reads."""
    exchange_id: ExchangeId
    state: ExchangeState
    user_validation: ValidationStatus
    book_validation: ValidationStatus

    def slot(self, fact_type: FactType) -> ValidationStatus:
        if fact_type is FactType.USER:
            return self.user_validation
        return self.book_validation
