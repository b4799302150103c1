"""Exchanges — borrow request creation and status lookup.

Invariants:
    - POST creates the exchange in pending-validation and fans out both requests
    - The response reflects the state at creation time; clients poll GET for the verdict
    - Unknown exchange -> 404 with the structured error envelope

Design Decisions:
    - Publisher taken from app.state (opened in the lifespan), never a module global
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookswap.config import get_settings
from bookswap.core.errors import ErrorContext, ResourceNotFoundError
from bookswap.core.repository_protocols import EventPublisher
from bookswap.infrastructure.database import get_db
from bookswap.models.exchange import Exchange
from bookswap.schemas.exchange import ExchangeCreate, ExchangeResponse
from bookswap.services.exchange_initiator import ExchangeInitiator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/exchanges", tags=["exchanges"])


def get_publisher(request: Request) -> EventPublisher:
    """FastAPI dependency for the event publisher."""
    bus = getattr(request.app.state, "bus", None)
    if bus is None:
        raise RuntimeError("Event bus not initialized")
    return bus


def _to_response(exchange: Exchange) -> ExchangeResponse:
    return ExchangeResponse(
        id=exchange.id,
        book_id=exchange.book_id,
        borrower_id=exchange.borrower_id,
        lender_id=exchange.lender_id,
        state=exchange.state,
        validation_status_user=exchange.validation_status_user,
        validation_status_book=exchange.validation_status_book,
        requested_at=exchange.requested_at,
        updated_at=exchange.updated_at,
    )


@router.post(
    "", response_model=ExchangeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_exchange(
    body: ExchangeCreate,
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
):
    """Request a book exchange; validation runs asynchronously."""
    initiator = ExchangeInitiator(db, publisher, get_settings())
    exchange = await initiator.create(
        book_id=body.book_id,
        borrower_id=body.borrower_id,
        lender_id=body.lender_id,
    )
    return _to_response(exchange)


@router.get("/{exchange_id}", response_model=ExchangeResponse)
async def get_exchange(exchange_id: UUID, db: AsyncSession = Depends(get_db)):
    """Exchange details including both validation slots."""
    result = await db.execute(
        select(Exchange).where(Exchange.id == exchange_id),
    )
    exchange = result.scalar_one_or_none()
    if not exchange:
        raise ResourceNotFoundError(
            "Exchange", str(exchange_id),
            ErrorContext(correlation_key=str(exchange_id)),
        )
    return _to_response(exchange)
