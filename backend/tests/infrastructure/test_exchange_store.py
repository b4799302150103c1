"""SQL Exchange Store — conditional writes against a real (SQLite) database.

Invariants:
    - write_slot writes once; later writes report ALREADY_SET and change nothing
    - transition_state is compare-and-swap on state: one winner only
    - find_stuck only returns pending-validation exchanges older than the cutoff
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from bookswap.core.domain_types import (
    ExchangeId, ExchangeState, FactType, SlotWrite, ValidationStatus,
)
from bookswap.models.exchange import Exchange

from tests.fakes import seed_exchange


async def _reload(test_db, exchange_id):
    test_db.expire_all()
    result = await test_db.execute(
        select(Exchange).where(Exchange.id == exchange_id),
    )
    return result.scalar_one()


async def test_new_exchange_reads_as_pending(store, test_db):
    exchange = await seed_exchange(test_db)
    snap = await store.read_state(ExchangeId(exchange.id))
    assert snap.state is ExchangeState.PENDING_VALIDATION
    assert snap.user_validation is ValidationStatus.PENDING
    assert snap.book_validation is ValidationStatus.PENDING


async def test_read_unknown_exchange_returns_none(store):
    assert await store.read_state(ExchangeId(uuid.uuid4())) is None


async def test_write_slot_sets_only_its_column(store, test_db):
    exchange = await seed_exchange(test_db)
    result = await store.write_slot(
        ExchangeId(exchange.id), FactType.BOOK, ValidationStatus.INVALID,
    )
    assert result is SlotWrite.WRITTEN
    row = await _reload(test_db, exchange.id)
    assert row.validation_status_book == "invalid"
    assert row.validation_status_user == "pending"
    assert row.state == "pending-validation"


async def test_second_slot_write_is_already_set_and_keeps_first_value(store, test_db):
    exchange = await seed_exchange(test_db)
    key = ExchangeId(exchange.id)
    await store.write_slot(key, FactType.USER, ValidationStatus.VALID)
    again = await store.write_slot(key, FactType.USER, ValidationStatus.INVALID)
    assert again is SlotWrite.ALREADY_SET
    snap = await store.read_state(key)
    assert snap.user_validation is ValidationStatus.VALID


async def test_write_slot_unknown_exchange_not_found(store):
    result = await store.write_slot(
        ExchangeId(uuid.uuid4()), FactType.USER, ValidationStatus.VALID,
    )
    assert result is SlotWrite.NOT_FOUND


async def test_transition_state_has_single_winner(store, test_db):
    exchange = await seed_exchange(test_db)
    key = ExchangeId(exchange.id)
    first = await store.transition_state(
        key, ExchangeState.PENDING_VALIDATION, ExchangeState.REJECTED,
    )
    second = await store.transition_state(
        key, ExchangeState.PENDING_VALIDATION, ExchangeState.REQUESTED,
    )
    assert first is True
    assert second is False
    snap = await store.read_state(key)
    assert snap.state is ExchangeState.REJECTED


async def test_transition_bumps_updated_at(store, test_db):
    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    exchange = await seed_exchange(test_db, updated_at=old)
    await store.transition_state(
        ExchangeId(exchange.id),
        ExchangeState.PENDING_VALIDATION, ExchangeState.REQUESTED,
    )
    row = await _reload(test_db, exchange.id)
    assert row.updated_at.replace(tzinfo=timezone.utc) > old


async def test_find_stuck_filters_by_state_and_age(store, test_db):
    now = datetime.now(timezone.utc)
    old = now - timedelta(hours=1)
    stuck = await seed_exchange(test_db, requested_at=old)
    await seed_exchange(test_db, requested_at=now)
    await seed_exchange(test_db, requested_at=old, state="rejected")

    found = await store.find_stuck(now - timedelta(minutes=5), limit=10)

    assert found == [stuck.id]


async def test_find_stuck_respects_limit(store, test_db):
    old = datetime.now(timezone.utc) - timedelta(hours=1)
    for _ in range(3):
        await seed_exchange(test_db, requested_at=old)
    found = await store.find_stuck(datetime.now(timezone.utc), limit=2)
    assert len(found) == 2
