"""Exchange Initiator — creates an exchange and fans out its validation requests.

Invariants:
    - Exchange committed in pending-validation with both slots pending BEFORE
      any request is published
    - One user request (subject = borrower) and one book request per exchange
    - Publish failure raises EventBusError; the committed exchange is left for
      the reconciliation sweep to reject

Design Decisions:
    - Thin service over AsyncSession + EventPublisher: the route only maps HTTP
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from bookswap.config import Settings
from bookswap.core.domain_types import FactType
from bookswap.core.errors import EventBusError
from bookswap.core.repository_protocols import EventPublisher
from bookswap.models.exchange import Exchange
from bookswap.schemas.events import ValidationRequest

logger = logging.getLogger(__name__)


class ExchangeInitiator:
    """Seeds the validation saga for a new borrow request."""

    def __init__(
        self, db: AsyncSession, publisher: EventPublisher, settings: Settings,
    ):
        self._db = db
        self._publisher = publisher
        self._settings = settings

    async def create(
        self, book_id: str, borrower_id: str, lender_id: str,
    ) -> Exchange:
        exchange = Exchange(
            book_id=book_id, borrower_id=borrower_id, lender_id=lender_id,
        )
        self._db.add(exchange)
        await self._db.commit()
        await self._db.refresh(exchange)

        subjects = {FactType.USER: borrower_id, FactType.BOOK: book_id}
        for fact_type, subject_id in subjects.items():
            request = ValidationRequest(
                correlation_key=exchange.id, subject_id=subject_id,
            )
            try:
                await self._publisher.publish(
                    self._settings.request_stream(fact_type),
                    request.model_dump_json(),
                )
            except EventBusError as e:
                e.context.correlation_key = str(exchange.id)
                raise
        logger.info(
            f"Exchange {exchange.id} pending validation",
            extra={"correlation_key": str(exchange.id)},
        )
        return exchange
