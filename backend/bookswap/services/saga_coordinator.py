"""Saga Coordinator — joins the user and book validation results of an exchange.

Invariants:
    - No in-memory join state: every invocation re-reads both slots and the state
    - Never mutates an exchange that is not in pending-validation (stale/duplicate guard)
    - Transition is a conditional write on pending-validation: exactly one winner
      when two evaluations race
    - Arrival order of the two results never changes the final state
    - Persistence failure -> REQUEUE; every other path acknowledges

Design Decisions:
    - The event's own outcome is only logged: the store is the source of truth,
      the event is a trigger to re-evaluate
    - Join decision delegated to core/join_rule.py (pure, tested without IO)
"""

import logging

from bookswap.core.domain_types import (
    ExchangeId, ExchangeState, HandlerOutcome,
)
from bookswap.core.errors import DatabaseError, MalformedMessageError
from bookswap.core.join_rule import JoinDecision, decide, target_state
from bookswap.core.repository_protocols import ExchangeStore
from bookswap.schemas.events import parse_result

logger = logging.getLogger(__name__)


class SagaCoordinator:
    """Resolves an exchange once both validation slots are durable."""

    def __init__(self, store: ExchangeStore):
        self._store = store

    async def on_result(self, payload: str) -> HandlerOutcome:
        """Handle one validation result entry from either result stream."""
        try:
            result = parse_result(payload)
        except MalformedMessageError as e:
            logger.error(
                f"Invalid result message: {e.message}: {payload!r}",
                extra={"error_code": e.code},
            )
            return HandlerOutcome.DISCARD

        exchange_id = ExchangeId(result.correlation_key)
        log_extra = {
            "correlation_key": str(exchange_id),
            "fact_type": result.fact_type.value,
            "outcome": result.outcome.value,
        }
        logger.info("Validating status of user and book", extra=log_extra)

        try:
            snapshot = await self._store.read_state(exchange_id)
            if snapshot is None:
                logger.warning(
                    f"Exchange {exchange_id} not found",
                    extra={**log_extra, "error_code": "RESOURCE_NOT_FOUND"},
                )
                return HandlerOutcome.ACK

            decision = decide(snapshot)
            new_state = target_state(decision)
            if new_state is None:
                self._log_no_op(decision, snapshot.state, log_extra)
                return HandlerOutcome.ACK

            won = await self._store.transition_state(
                exchange_id, ExchangeState.PENDING_VALIDATION, new_state,
            )
        except DatabaseError as e:
            logger.error(
                f"Could not resolve exchange {exchange_id}: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            return HandlerOutcome.REQUEUE

        if won:
            logger.info(
                f"Exchange {exchange_id} is "
                f"{'valid' if decision is JoinDecision.ACCEPT else 'invalid'}, "
                f"state -> {new_state.value}",
                extra=log_extra,
            )
        else:
            logger.info(
                f"Exchange {exchange_id} already resolved by a concurrent evaluation",
                extra=log_extra,
            )
        return HandlerOutcome.ACK

    @staticmethod
    def _log_no_op(
        decision: JoinDecision, state: ExchangeState, log_extra: dict,
    ) -> None:
        if decision is JoinDecision.STALE:
            logger.info(
                f"Exchange {log_extra['correlation_key']} is not in "
                f"pending-validation state ({state.value}), ignoring result",
                extra=log_extra,
            )
        else:
            logger.info(
                f"Exchange {log_extra['correlation_key']} still awaiting "
                f"the other validation",
                extra=log_extra,
            )
