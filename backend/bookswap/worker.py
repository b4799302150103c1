"""Saga Worker — runs the fact checkers, the coordinator and the sweep as consumers.

Usage:
    python -m bookswap.worker user-checker
    python -m bookswap.worker book-checker
    python -m bookswap.worker saga-coordinator
    python -m bookswap.worker reconciler
    python -m bookswap.worker all

Invariants:
    - Each role opens its own DatabaseSessionManager and RedisStreamBus and
      releases both on exit; roles share nothing in-process, even under `all`
    - Consumer group name == role name
    - SIGINT/SIGTERM set the stop event; in-flight handlers finish before exit
"""

import argparse
import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable

from bookswap.config import Settings, get_settings
from bookswap.core.domain_types import FactType
from bookswap.infrastructure.database import DatabaseSessionManager
from bookswap.infrastructure.event_bus import RedisStreamBus
from bookswap.infrastructure.exchange_store import SqlExchangeStore
from bookswap.infrastructure.observability import setup_logging
from bookswap.infrastructure.subject_directory import (
    HttpBookInventory, SqlUserDirectory,
)
from bookswap.services.fact_checker import FactChecker
from bookswap.services.reconciliation import ReconciliationSweep
from bookswap.services.saga_coordinator import SagaCoordinator

logger = logging.getLogger(__name__)

RoleRunner = Callable[[Settings, asyncio.Event], Awaitable[None]]


def _db_manager(settings: Settings) -> DatabaseSessionManager:
    return DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


def _bus_options(settings: Settings, role: str) -> dict:
    return {
        "group": role,
        "consumer": settings.consumer_name,
        "block_ms": settings.stream_block_ms,
        "batch_size": settings.stream_batch_size,
        "reclaim_idle_ms": settings.reclaim_idle_ms,
        "max_deliveries": settings.max_deliveries,
        "max_in_flight": settings.max_in_flight,
    }


async def run_user_checker(settings: Settings, stop: asyncio.Event) -> None:
    db_manager = _db_manager(settings)
    try:
        async with RedisStreamBus.connect(
            settings.redis_url, **_bus_options(settings, "user-checker"),
        ) as bus:
            checker = FactChecker(
                FactType.USER,
                SqlUserDirectory(db_manager),
                SqlExchangeStore(db_manager),
                bus,
                settings.user_result_stream,
                settings.lookup_timeout_seconds,
            )
            await bus.consume({settings.user_request_stream: checker.handle}, stop)
    finally:
        await db_manager.dispose()


async def run_book_checker(settings: Settings, stop: asyncio.Event) -> None:
    db_manager = _db_manager(settings)
    inventory = HttpBookInventory(
        settings.inventory_service_url, settings.lookup_timeout_seconds,
    )
    try:
        async with RedisStreamBus.connect(
            settings.redis_url, **_bus_options(settings, "book-checker"),
        ) as bus:
            checker = FactChecker(
                FactType.BOOK,
                inventory,
                SqlExchangeStore(db_manager),
                bus,
                settings.book_result_stream,
                settings.lookup_timeout_seconds,
            )
            await bus.consume({settings.book_request_stream: checker.handle}, stop)
    finally:
        await inventory.aclose()
        await db_manager.dispose()


async def run_saga_coordinator(settings: Settings, stop: asyncio.Event) -> None:
    db_manager = _db_manager(settings)
    try:
        async with RedisStreamBus.connect(
            settings.redis_url, **_bus_options(settings, "saga-coordinator"),
        ) as bus:
            coordinator = SagaCoordinator(SqlExchangeStore(db_manager))
            await bus.consume(
                {
                    settings.user_result_stream: coordinator.on_result,
                    settings.book_result_stream: coordinator.on_result,
                },
                stop,
            )
    finally:
        await db_manager.dispose()


async def run_reconciler(settings: Settings, stop: asyncio.Event) -> None:
    db_manager = _db_manager(settings)
    try:
        sweep = ReconciliationSweep(
            SqlExchangeStore(db_manager),
            deadline_seconds=settings.validation_deadline_seconds,
            interval_seconds=settings.sweep_interval_seconds,
            batch_size=settings.sweep_batch_size,
        )
        await sweep.run(stop)
    finally:
        await db_manager.dispose()


ROLES: dict[str, RoleRunner] = {
    "user-checker": run_user_checker,
    "book-checker": run_book_checker,
    "saga-coordinator": run_saga_coordinator,
    "reconciler": run_reconciler,
}


async def run(role: str, settings: Settings) -> None:
    """Run one role (or all of them) until SIGINT/SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    runners = list(ROLES.values()) if role == "all" else [ROLES[role]]
    logger.info(f"Starting worker role {role}", extra={"role": role})
    await asyncio.gather(*(runner(settings, stop) for runner in runners))
    logger.info(f"Worker role {role} stopped", extra={"role": role})


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="bookswap.worker",
        description="Run exchange validation saga consumers.",
    )
    parser.add_argument("role", choices=[*ROLES, "all"])
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    asyncio.run(run(args.role, settings))


if __name__ == "__main__":
    main()
