"""Redis Stream Bus — durable publish/subscribe with per-consumer acknowledgment.

Invariants:
    - At-least-once: an entry is XACKed only after its handler returns ACK or DISCARD
    - REQUEUE leaves the entry in the group's pending list; it is reclaimed with
      XAUTOCLAIM once idle for reclaim_idle_ms and handed to the handler again
    - Redelivery is bounded: past max_deliveries the entry is copied to
      "<stream>.dead" and acknowledged
    - Entries of one batch are handled concurrently, at most max_in_flight at once
    - One bus == one Redis connection pool, opened by connect() and closed on exit

Design Decisions:
    - Redis Streams consumer groups: each role (user-checker, book-checker,
      saga-coordinator) is its own group, so every role sees every entry of the
      streams it reads
    - One JSON document per entry under the `payload` field; handlers parse it
    - Handlers return HandlerOutcome instead of acking themselves: settlement
      policy lives in one place
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from redis.asyncio import Redis
from redis.exceptions import RedisError, ResponseError

from bookswap.core.domain_types import HandlerOutcome
from bookswap.core.errors import EventBusError

logger = logging.getLogger(__name__)

PAYLOAD_FIELD = "payload"
DEAD_LETTER_SUFFIX = ".dead"

MessageHandler = Callable[[str], Awaitable[HandlerOutcome]]

# (stream, message_id, fields)
Delivery = tuple[str, str, dict]


class RedisStreamBus:
    """Publishes and consumes saga events on Redis Streams."""

    def __init__(
        self,
        redis: Redis,
        *,
        group: str | None = None,
        consumer: str = "bookswap",
        block_ms: int = 5000,
        batch_size: int = 10,
        reclaim_idle_ms: int = 30_000,
        max_deliveries: int = 5,
        max_in_flight: int = 10,
    ):
        self._redis = redis
        self._group = group
        self._consumer = consumer
        self._block_ms = block_ms
        self._batch_size = batch_size
        self._reclaim_idle_ms = reclaim_idle_ms
        self._max_deliveries = max_deliveries
        self._in_flight = asyncio.Semaphore(max_in_flight)

    @classmethod
    @asynccontextmanager
    async def connect(
        cls, redis_url: str, **kwargs,
    ) -> AsyncGenerator["RedisStreamBus", None]:
        """Open a scoped connection; closed when the block exits."""
        redis = Redis.from_url(redis_url, decode_responses=True)
        try:
            yield cls(redis, **kwargs)
        finally:
            await redis.aclose()

    # ─── Publishing ──────────────────────────────────────────────

    async def publish(self, stream: str, payload: str) -> str:
        try:
            message_id = await self._redis.xadd(stream, {PAYLOAD_FIELD: payload})
        except RedisError as e:
            raise EventBusError(str(e), stream)
        logger.debug(
            f"Published to {stream}",
            extra={"stream": stream, "message_id": message_id},
        )
        return message_id

    async def ping(self) -> bool:
        """Check broker connectivity (for readiness probes)."""
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    # ─── Consuming ───────────────────────────────────────────────

    async def ensure_groups(self, streams: Iterable[str]) -> None:
        """Create this bus's consumer group on each stream (idempotent)."""
        group = self._require_group()
        for stream in streams:
            try:
                await self._redis.xgroup_create(
                    stream, group, id="0", mkstream=True,
                )
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise EventBusError(str(e), stream)

    async def consume(
        self,
        handlers: Mapping[str, MessageHandler],
        stop: asyncio.Event,
    ) -> None:
        """Poll the streams until stop is set."""
        await self.ensure_groups(handlers)
        logger.info(
            f"Consumer {self._consumer} of group {self._group} listening on "
            f"{', '.join(handlers)}",
        )
        while not stop.is_set():
            try:
                await self.poll_once(handlers)
            except RedisError as e:
                logger.error(
                    f"Stream poll failed: {e}",
                    extra={"error_code": "EVENT_BUS_ERROR"},
                )
                await _sleep_unless_stopped(stop, 1.0)

    async def poll_once(self, handlers: Mapping[str, MessageHandler]) -> int:
        """One reclaim + read cycle. Returns the number of entries handed to handlers."""
        handled = 0
        for stream in handlers:
            handled += await self._reclaim(stream, handlers)
        response = await self._redis.xreadgroup(
            self._require_group(), self._consumer,
            streams={stream: ">" for stream in handlers},
            count=self._batch_size,
            block=self._block_ms,
        )
        deliveries = [
            (stream, message_id, fields)
            for stream, entries in (response or [])
            for message_id, fields in entries
        ]
        await self._dispatch_all(deliveries, handlers)
        return handled + len(deliveries)

    async def _reclaim(
        self, stream: str, handlers: Mapping[str, MessageHandler],
    ) -> int:
        """Take over entries left unacknowledged past reclaim_idle_ms."""
        group = self._require_group()
        reply = await self._redis.xautoclaim(
            stream, group, self._consumer,
            min_idle_time=self._reclaim_idle_ms,
            start_id="0-0",
            count=self._batch_size,
        )
        entries = reply[1] if reply else []
        deliveries: list[Delivery] = []
        for message_id, fields in entries:
            if not fields:
                # Trimmed from the stream while pending
                await self._redis.xack(stream, group, message_id)
                continue
            attempts = await self._delivery_count(stream, message_id)
            if attempts > self._max_deliveries:
                await self._dead_letter(stream, message_id, fields, attempts)
                continue
            logger.warning(
                f"Redelivering {message_id} from {stream}",
                extra={
                    "stream": stream, "message_id": message_id,
                    "attempt": attempts,
                },
            )
            deliveries.append((stream, message_id, fields))
        await self._dispatch_all(deliveries, handlers)
        return len(deliveries)

    async def _delivery_count(self, stream: str, message_id: str) -> int:
        pending = await self._redis.xpending_range(
            stream, self._require_group(),
            min=message_id, max=message_id, count=1,
        )
        return int(pending[0]["times_delivered"]) if pending else 1

    async def _dead_letter(
        self, stream: str, message_id: str, fields: dict, attempts: int,
    ) -> None:
        dead_stream = f"{stream}{DEAD_LETTER_SUFFIX}"
        await self._redis.xadd(dead_stream, {
            **fields,
            "source_id": message_id,
            "deliveries": str(attempts),
        })
        await self._redis.xack(stream, self._require_group(), message_id)
        logger.error(
            f"Entry {message_id} exceeded {self._max_deliveries} deliveries, "
            f"moved to {dead_stream}",
            extra={
                "stream": stream, "message_id": message_id,
                "attempt": attempts, "error_code": "MAX_DELIVERIES_EXCEEDED",
            },
        )

    async def _dispatch_all(
        self,
        deliveries: list[Delivery],
        handlers: Mapping[str, MessageHandler],
    ) -> None:
        if not deliveries:
            return
        await asyncio.gather(*(
            self._dispatch(stream, message_id, fields, handlers[stream])
            for stream, message_id, fields in deliveries
        ))

    async def _dispatch(
        self, stream: str, message_id: str, fields: dict,
        handler: MessageHandler,
    ) -> None:
        async with self._in_flight:
            payload = fields.get(PAYLOAD_FIELD, "")
            try:
                outcome = await handler(payload)
            except Exception as e:
                logger.error(
                    f"Handler crashed on {message_id}: {e}",
                    exc_info=True,
                    extra={"stream": stream, "message_id": message_id},
                )
                outcome = HandlerOutcome.REQUEUE
            await self._settle(stream, message_id, outcome)

    async def _settle(
        self, stream: str, message_id: str, outcome: HandlerOutcome,
    ) -> None:
        if outcome is HandlerOutcome.REQUEUE:
            logger.warning(
                f"Left {message_id} unacknowledged for redelivery",
                extra={"stream": stream, "message_id": message_id},
            )
            return
        try:
            await self._redis.xack(stream, self._require_group(), message_id)
        except RedisError as e:
            # Still pending: it will be reclaimed and handled again
            logger.error(
                f"XACK failed for {message_id}: {e}",
                extra={
                    "stream": stream, "message_id": message_id,
                    "error_code": "EVENT_BUS_ERROR",
                },
            )

    def _require_group(self) -> str:
        if not self._group:
            raise RuntimeError("Consumer group required to consume")
        return self._group


async def _sleep_unless_stopped(stop: asyncio.Event, seconds: float) -> None:
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass
