"""SQL Exchange Store — conditional reads and writes on the exchanges table.

Invariants:
    - write_slot only succeeds while the slot is still pending (written once)
    - transition_state only succeeds while state == expected (compare-and-swap)
    - Success is judged by UPDATE rowcount, never by a prior SELECT
    - Every write commits before returning: callers may publish right after
    - DB failures surface as DatabaseError (mapped by DatabaseSessionManager)

Design Decisions:
    - One short session per operation: no transaction held across a lookup or publish
    - Slot column chosen from an explicit dict, not getattr on a formatted name
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from bookswap.core.domain_types import (
    ExchangeId, ExchangeSnapshot, ExchangeState, FactType,
    SlotWrite, ValidationStatus,
)
from bookswap.infrastructure.database import DatabaseSessionManager
from bookswap.models.exchange import Exchange

logger = logging.getLogger(__name__)

_SLOT_COLUMNS = {
    FactType.USER: Exchange.validation_status_user,
    FactType.BOOK: Exchange.validation_status_book,
}


def _to_snapshot(row) -> ExchangeSnapshot:
    return ExchangeSnapshot(
        exchange_id=ExchangeId(row.id),
        state=ExchangeState(row.state),
        user_validation=ValidationStatus(row.validation_status_user),
        book_validation=ValidationStatus(row.validation_status_book),
    )


class SqlExchangeStore:
    """ExchangeStore backed by SQLAlchemy async sessions."""

    def __init__(self, db_manager: DatabaseSessionManager):
        self._db = db_manager

    async def read_state(
        self, exchange_id: ExchangeId,
    ) -> ExchangeSnapshot | None:
        async with self._db.session() as db:
            result = await db.execute(
                select(
                    Exchange.id,
                    Exchange.state,
                    Exchange.validation_status_user,
                    Exchange.validation_status_book,
                ).where(Exchange.id == exchange_id),
            )
            row = result.one_or_none()
        return _to_snapshot(row) if row else None

    async def write_slot(
        self, exchange_id: ExchangeId, fact_type: FactType,
        outcome: ValidationStatus,
    ) -> SlotWrite:
        """Set one validation slot if, and only if, it is still pending."""
        column = _SLOT_COLUMNS[fact_type]
        async with self._db.session() as db:
            result = await db.execute(
                update(Exchange)
                .where(
                    Exchange.id == exchange_id,
                    column == ValidationStatus.PENDING.value,
                )
                .values({
                    column: outcome.value,
                    Exchange.updated_at: datetime.now(timezone.utc),
                }),
            )
            await db.commit()
            if result.rowcount == 1:
                return SlotWrite.WRITTEN
            exists = await db.execute(
                select(Exchange.id).where(Exchange.id == exchange_id),
            )
            if exists.scalar_one_or_none() is None:
                return SlotWrite.NOT_FOUND
        return SlotWrite.ALREADY_SET

    async def transition_state(
        self, exchange_id: ExchangeId, expected: ExchangeState,
        new_state: ExchangeState,
    ) -> bool:
        """Move state from expected to new_state. False when someone else moved it first."""
        async with self._db.session() as db:
            result = await db.execute(
                update(Exchange)
                .where(
                    Exchange.id == exchange_id,
                    Exchange.state == expected.value,
                )
                .values(
                    state=new_state.value,
                    updated_at=datetime.now(timezone.utc),
                ),
            )
            await db.commit()
        return result.rowcount == 1

    async def find_stuck(
        self, cutoff: datetime, limit: int,
    ) -> list[ExchangeId]:
        """Exchanges still pending-validation that were requested before cutoff."""
        async with self._db.session() as db:
            result = await db.execute(
                select(Exchange.id)
                .where(
                    Exchange.state == ExchangeState.PENDING_VALIDATION.value,
                    Exchange.requested_at < cutoff,
                )
                .order_by(Exchange.requested_at)
                .limit(limit),
            )
            return [ExchangeId(i) for i in result.scalars().all()]
