"""Test doubles for the saga's collaborators.

Invariants:
    - Fakes implement the Protocols of core/repository_protocols.py structurally
    - InMemoryExchangeStore keeps the conditional-write semantics of the SQL store
      and yields to the event loop between read and write, so concurrent
      evaluations interleave
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from bookswap.core.domain_types import (
    ExchangeId, ExchangeSnapshot, ExchangeState, FactType,
    SlotWrite, ValidationStatus,
)
from bookswap.core.errors import DatabaseError, EventBusError, SubjectLookupError
from bookswap.models.exchange import Exchange


class RecordingPublisher:
    """EventPublisher that records (stream, payload) pairs."""

    def __init__(self, fail: bool = False):
        self.published: list[tuple[str, str]] = []
        self.fail = fail

    async def publish(self, stream: str, payload: str) -> str:
        if self.fail:
            raise EventBusError("broker unreachable", stream)
        self.published.append((stream, payload))
        return f"{len(self.published)}-0"

    def payloads(self, stream: str) -> list[str]:
        return [p for s, p in self.published if s == stream]

    async def ping(self) -> bool:
        return not self.fail


class StaticDirectory:
    """SubjectDirectory answering from a fixed set of known ids."""

    def __init__(self, known: set[str]):
        self.known = known
        self.calls: list[str] = []

    async def exists(self, subject_id: str) -> bool:
        self.calls.append(subject_id)
        return subject_id in self.known


class FailingDirectory:
    """SubjectDirectory whose backing service is down."""

    def __init__(self):
        self.calls = 0

    async def exists(self, subject_id: str) -> bool:
        self.calls += 1
        raise SubjectLookupError("connection refused", "inventory-service")


class BrokenDriverDirectory:
    """SubjectDirectory whose driver error escapes unmapped."""

    async def exists(self, subject_id: str) -> bool:
        raise ConnectionRefusedError(111, "Connect call failed")


class HangingDirectory:
    """SubjectDirectory that never answers."""

    async def exists(self, subject_id: str) -> bool:
        await asyncio.sleep(3600)
        return True


@dataclass
class _Row:
    state: ExchangeState = ExchangeState.PENDING_VALIDATION
    user: ValidationStatus = ValidationStatus.PENDING
    book: ValidationStatus = ValidationStatus.PENDING
    requested_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class InMemoryExchangeStore:
    """ExchangeStore over a dict, with CAS writes and optional failures."""

    def __init__(self):
        self.rows: dict[ExchangeId, _Row] = {}
        self.transitions: list[tuple[ExchangeId, ExchangeState]] = []
        self.fail_writes = False
        self.fail_reads = False

    def add(self, exchange_id: ExchangeId | None = None, **fields) -> ExchangeId:
        exchange_id = exchange_id or ExchangeId(uuid.uuid4())
        self.rows[exchange_id] = _Row(**fields)
        return exchange_id

    async def read_state(self, exchange_id):
        await asyncio.sleep(0)
        if self.fail_reads:
            raise DatabaseError("Connection or operational error", "execute")
        row = self.rows.get(exchange_id)
        if row is None:
            return None
        return ExchangeSnapshot(exchange_id, row.state, row.user, row.book)

    async def write_slot(self, exchange_id, fact_type, outcome):
        await asyncio.sleep(0)
        if self.fail_writes:
            raise DatabaseError("Connection or operational error", "execute")
        row = self.rows.get(exchange_id)
        if row is None:
            return SlotWrite.NOT_FOUND
        attr = "user" if fact_type is FactType.USER else "book"
        if getattr(row, attr) is not ValidationStatus.PENDING:
            return SlotWrite.ALREADY_SET
        setattr(row, attr, outcome)
        return SlotWrite.WRITTEN

    async def transition_state(self, exchange_id, expected, new_state):
        await asyncio.sleep(0)
        if self.fail_writes:
            raise DatabaseError("Connection or operational error", "execute")
        row = self.rows.get(exchange_id)
        if row is None or row.state is not expected:
            return False
        row.state = new_state
        self.transitions.append((exchange_id, new_state))
        return True

    async def find_stuck(self, cutoff, limit):
        stuck = [
            i for i, r in self.rows.items()
            if r.state is ExchangeState.PENDING_VALIDATION and r.requested_at < cutoff
        ]
        return stuck[:limit]


async def seed_exchange(
    db: AsyncSession,
    *,
    book_id: str = "book-1",
    borrower_id: str = "user-1",
    lender_id: str = "user-2",
    **fields,
) -> Exchange:
    """Insert an exchange row directly into the test DB."""
    exchange = Exchange(
        book_id=book_id, borrower_id=borrower_id, lender_id=lender_id, **fields,
    )
    db.add(exchange)
    await db.commit()
    await db.refresh(exchange)
    return exchange
