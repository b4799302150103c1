"""Boundary Protocols — contracts between the saga services and their collaborators.

Invariants:
    - Services NEVER import concrete stores, clients or transports
    - All IO operations accessed through Protocol types
    - Implementations provided by infrastructure/ via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Every store write is conditional: write_slot on the slot still pending,
      transition_state on the expected current state
"""

from datetime import datetime
from typing import Protocol

from bookswap.core.domain_types import (
    ExchangeId, ExchangeSnapshot, ExchangeState, FactType,
    SlotWrite, ValidationStatus,
)


class SubjectDirectory(Protocol):
    """Authoritative existence source for one fact type.

    Returns False for a clean not-found; raises SubjectLookupError for
    anything else.
    """
    async def exists(self, subject_id: str) -> bool: ...


class ExchangeStore(Protocol):
    """Contract for exchange persistence — implemented by infrastructure."""
    async def read_state(
        self, exchange_id: ExchangeId,
    ) -> ExchangeSnapshot | None: ...

    async def write_slot(
        self, exchange_id: ExchangeId, fact_type: FactType,
        outcome: ValidationStatus,
    ) -> SlotWrite: ...

    async def transition_state(
        self, exchange_id: ExchangeId, expected: ExchangeState,
        new_state: ExchangeState,
    ) -> bool: ...

    async def find_stuck(
        self, cutoff: datetime, limit: int,
    ) -> list[ExchangeId]: ...


class EventPublisher(Protocol):
    """Contract for outbound events — returns the transport's message id."""
    async def publish(self, stream: str, payload: str) -> str: ...
