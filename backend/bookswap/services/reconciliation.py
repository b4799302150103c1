"""Reconciliation Sweep — rejects exchanges stuck in pending-validation.

Invariants:
    - Only exchanges requested more than validation_deadline ago are touched
    - Rejection is a conditional write on pending-validation: an exchange the
      coordinator resolves concurrently keeps the coordinator's verdict
    - Validation slots are never written here
    - Each forced rejection logged at WARNING with VALIDATION_DEADLINE_EXCEEDED

Design Decisions:
    - Bounded batches (sweep_batch_size) ordered oldest first
    - A stuck exchange means a request or result entry was lost; the sweep
      closes the saga, the log line is the alarm
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from bookswap.core.domain_types import ExchangeState
from bookswap.core.errors import DatabaseError
from bookswap.core.repository_protocols import ExchangeStore

logger = logging.getLogger(__name__)


class ReconciliationSweep:
    """Periodically closes sagas whose validation never completed."""

    def __init__(
        self,
        store: ExchangeStore,
        deadline_seconds: int = 300,
        interval_seconds: int = 60,
        batch_size: int = 100,
    ):
        self._store = store
        self._deadline = timedelta(seconds=deadline_seconds)
        self._interval = interval_seconds
        self._batch_size = batch_size

    async def run_once(self, now: datetime | None = None) -> int:
        """One pass. Returns the number of exchanges rejected."""
        cutoff = (now or datetime.now(timezone.utc)) - self._deadline
        stuck = await self._store.find_stuck(cutoff, self._batch_size)
        rejected = 0
        for exchange_id in stuck:
            won = await self._store.transition_state(
                exchange_id,
                ExchangeState.PENDING_VALIDATION,
                ExchangeState.REJECTED,
            )
            if won:
                rejected += 1
                logger.warning(
                    f"Exchange {exchange_id} exceeded validation deadline "
                    f"({self._deadline.total_seconds():.0f}s), rejected",
                    extra={
                        "correlation_key": str(exchange_id),
                        "error_code": "VALIDATION_DEADLINE_EXCEEDED",
                    },
                )
        return rejected

    async def run(self, stop: asyncio.Event) -> None:
        """Repeat run_once every interval until stop is set."""
        logger.info(
            f"Reconciliation sweep every {self._interval}s, "
            f"deadline {self._deadline.total_seconds():.0f}s",
        )
        while not stop.is_set():
            try:
                await self.run_once()
            except DatabaseError as e:
                logger.error(
                    f"Reconciliation pass failed: {e.message}",
                    extra={"error_code": e.code},
                )
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
