"""Exchange Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - ExchangeCreate ids: 1-64 chars, stripped, non-empty
    - ExchangeResponse exposes both validation slots alongside the state

Design Decisions:
    - field_validator for side-effect-free transforms (strip) — keeps models pure
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ExchangeCreate(BaseModel):
    """Borrow request — the borrower asks the lender for a book."""
    book_id: str = Field(min_length=1, max_length=64)
    borrower_id: str = Field(min_length=1, max_length=64)
    lender_id: str = Field(min_length=1, max_length=64)

    @field_validator("book_id", "borrower_id", "lender_id")
    @classmethod
    def strip_ids(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be empty or whitespace")
        return v


class ExchangeResponse(BaseModel):
    """Exchange response — public-facing exchange data."""
    id: UUID
    book_id: str
    borrower_id: str
    lender_id: str
    state: str
    validation_status_user: str
    validation_status_book: str
    requested_at: datetime
    updated_at: datetime
