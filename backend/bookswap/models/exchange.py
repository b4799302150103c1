"""Exchange ORM — persists the parent entity of the validation saga.

Invariants:
    - id is the UUID correlation key carried by every saga event
    - validation_status_user / validation_status_book start pending, written once each
    - state starts pending-validation and leaves it exactly once
    - updated_at bumped on every conditional write

Design Decisions:
    - Slots are plain columns on the exchange row: the coordinator reads both
      and the state in one SELECT
    - String columns for enums: values come from core/domain_types.py
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from bookswap.core.domain_types import ExchangeState, ValidationStatus
from bookswap.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Exchange(Base):
    """Book exchange between a borrower and a lender."""
    __tablename__ = "exchanges"
    __table_args__ = (
        Index("ix_exchanges_state_requested_at", "state", "requested_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    book_id: Mapped[str] = mapped_column(String(64), nullable=False)
    borrower_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(
        String(32), nullable=False,
        default=ExchangeState.PENDING_VALIDATION.value,
    )
    validation_status_user: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ValidationStatus.PENDING.value,
    )
    validation_status_book: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ValidationStatus.PENDING.value,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
