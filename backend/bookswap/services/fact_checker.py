"""Fact Checker — validates one independent precondition of an exchange.

Invariants:
    - Malformed request -> DISCARD: no lookup, no slot write, no result event
    - Exactly one existence lookup per handled request, bounded by lookup_timeout
    - Fail-closed: not-found, timeout and any lookup error all yield INVALID,
      each logged with its own error code
    - Slot write commits BEFORE the result is published
    - Slot write failure or publish failure -> REQUEUE (message stays unacked)
    - A redelivered request whose slot is already set re-publishes the stored
      outcome; the slot is never rewritten

Design Decisions:
    - One generic class parameterised by FactType: user and book checkers differ
      only in their SubjectDirectory and result stream
    - Lookup result is not persisted until after the timeout race, so a slow
      directory never holds a DB session
"""

import asyncio
import logging

from bookswap.core.domain_types import (
    ExchangeId, FactType, HandlerOutcome, SlotWrite, ValidationStatus,
)
from bookswap.core.errors import (
    DatabaseError, EventBusError, MalformedMessageError, SubjectLookupError,
)
from bookswap.core.repository_protocols import (
    EventPublisher, ExchangeStore, SubjectDirectory,
)
from bookswap.schemas.events import (
    ValidationRequest, ValidationResult, parse_request,
)

logger = logging.getLogger(__name__)


class FactChecker:
    """Consumes validation requests for one fact type and emits results."""

    def __init__(
        self,
        fact_type: FactType,
        directory: SubjectDirectory,
        store: ExchangeStore,
        publisher: EventPublisher,
        result_stream: str,
        lookup_timeout: float = 5.0,
    ):
        self.fact_type = fact_type
        self._directory = directory
        self._store = store
        self._publisher = publisher
        self._result_stream = result_stream
        self._lookup_timeout = lookup_timeout

    async def handle(self, payload: str) -> HandlerOutcome:
        """Process one validation request entry."""
        try:
            request = parse_request(payload)
        except MalformedMessageError as e:
            logger.error(
                f"Invalid message format on {self.fact_type.value} checker: "
                f"{e.message}: {payload!r}",
                extra={"fact_type": self.fact_type.value, "error_code": e.code},
            )
            return HandlerOutcome.DISCARD

        log_extra = {
            "correlation_key": str(request.correlation_key),
            "fact_type": self.fact_type.value,
        }
        logger.info(
            f"Validating {self.fact_type.value} {request.subject_id}",
            extra=log_extra,
        )
        outcome = await self._lookup(request, log_extra)

        exchange_id = ExchangeId(request.correlation_key)
        try:
            write = await self._store.write_slot(
                exchange_id, self.fact_type, outcome,
            )
            if write is SlotWrite.ALREADY_SET:
                outcome = await self._stored_outcome(exchange_id, outcome)
        except DatabaseError as e:
            logger.error(
                f"Could not persist {self.fact_type.value} slot: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            return HandlerOutcome.REQUEUE

        if write is SlotWrite.NOT_FOUND:
            logger.warning(
                f"Exchange {request.correlation_key} not found, dropping request",
                extra={**log_extra, "error_code": "RESOURCE_NOT_FOUND"},
            )
            return HandlerOutcome.DISCARD

        result = ValidationResult(
            correlation_key=request.correlation_key,
            fact_type=self.fact_type,
            outcome=outcome,
        )
        try:
            await self._publisher.publish(
                self._result_stream, result.model_dump_json(),
            )
        except EventBusError as e:
            logger.error(
                f"Could not publish {self.fact_type.value} result: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            return HandlerOutcome.REQUEUE

        logger.info(
            f"{self.fact_type.value.capitalize()} {request.subject_id} "
            f"is {outcome.value}",
            extra={**log_extra, "outcome": outcome.value},
        )
        return HandlerOutcome.ACK

    async def _lookup(
        self, request: ValidationRequest, log_extra: dict,
    ) -> ValidationStatus:
        """Run the single existence lookup. Never raises; fails closed."""
        try:
            found = await asyncio.wait_for(
                self._directory.exists(request.subject_id),
                timeout=self._lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Lookup for {self.fact_type.value} {request.subject_id} timed "
                f"out after {self._lookup_timeout}s, failing closed",
                extra={**log_extra, "error_code": "LOOKUP_TIMEOUT"},
            )
            return ValidationStatus.INVALID
        except SubjectLookupError as e:
            logger.warning(
                f"Error validating {self.fact_type.value} {request.subject_id}: "
                f"{e.message}, failing closed",
                extra={**log_extra, "error_code": e.code},
            )
            return ValidationStatus.INVALID
        except Exception as e:
            # Driver errors (refused connections etc.) that no directory mapped
            logger.error(
                f"Unexpected error validating {self.fact_type.value} "
                f"{request.subject_id}: {e!r}, failing closed",
                exc_info=True,
                extra={**log_extra, "error_code": "LOOKUP_FAILED"},
            )
            return ValidationStatus.INVALID

        if not found:
            logger.info(
                f"{self.fact_type.value.capitalize()} not found: {request.subject_id}",
                extra={**log_extra, "error_code": "SUBJECT_NOT_FOUND"},
            )
            return ValidationStatus.INVALID
        return ValidationStatus.VALID

    async def _stored_outcome(
        self, exchange_id: ExchangeId, fallback: ValidationStatus,
    ) -> ValidationStatus:
        """Outcome already recorded by an earlier delivery of the same request."""
        snapshot = await self._store.read_state(exchange_id)
        if snapshot is None:
            return fallback
        stored = snapshot.slot(self.fact_type)
        logger.info(
            f"{self.fact_type.value.capitalize()} slot already {stored.value}, "
            f"re-publishing stored outcome",
            extra={
                "correlation_key": str(exchange_id),
                "fact_type": self.fact_type.value,
                "outcome": stored.value,
            },
        )
        return stored
