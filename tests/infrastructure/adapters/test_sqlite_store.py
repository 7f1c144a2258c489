import asyncio
import sqlite3
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from cadence.application.due_selector import DueCardSelector
from cadence.application.review_service import ReviewService
from cadence.application.scheduling import PriorState, schedule
from cadence.application.stats.service import ProgressAggregator
from cadence.domain.errors import StoreUnavailable
from cadence.domain.progress.models import ProgressRecord
from cadence.infrastructure.adapters.sqlite_store import SqliteProgressStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "progress.db"


@pytest.fixture
def sqlite_store(db_path):
    return SqliteProgressStore(db_path, timeout=0.1)


@pytest.fixture
def record(now):
    return ProgressRecord(
        user_id=1,
        card_id=10,
        deck_id=1,
        last_grade=5,
        interval=6,
        ease_factor=2.8,
        due_date=now + timedelta(days=6),
        updated_at=now,
        review_count=2,
        lapse_count=0,
        created_at=now - timedelta(days=1),
    )


@pytest.mark.asyncio
async def test_creates_database(sqlite_store, db_path):
    assert await sqlite_store.get(1, 10) is None
    assert db_path.exists()


@pytest.mark.asyncio
async def test_round_trip_preserves_fields(sqlite_store, record):
    await sqlite_store.upsert(1, 10, lambda _prior: record)
    assert await sqlite_store.get(1, 10) == record


@pytest.mark.asyncio
async def test_update_sees_prior(sqlite_store, record):
    await sqlite_store.upsert(1, 10, lambda _prior: record)

    seen = []

    def bump(prior):
        seen.append(prior)
        return replace(prior, review_count=prior.review_count + 1)

    updated = await sqlite_store.upsert(1, 10, bump)

    assert seen == [record]
    assert updated.review_count == 3
    assert (await sqlite_store.get(1, 10)).review_count == 3


@pytest.mark.asyncio
async def test_persists_across_instances(db_path, record):
    await SqliteProgressStore(db_path).upsert(1, 10, lambda _prior: record)
    assert await SqliteProgressStore(db_path).get(1, 10) == record


@pytest.mark.asyncio
async def test_failed_update_rolls_back(sqlite_store, record):
    await sqlite_store.upsert(1, 10, lambda _prior: record)

    def boom(_prior):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await sqlite_store.upsert(1, 10, boom)
    assert await sqlite_store.get(1, 10) == record


@pytest.mark.asyncio
async def test_wrong_key_rejected(sqlite_store, record):
    with pytest.raises(ValueError):
        await sqlite_store.upsert(1, 11, lambda _prior: record)
    assert await sqlite_store.get(1, 11) is None


@pytest.mark.asyncio
async def test_constraint_violation_is_unavailable(sqlite_store, record):
    with pytest.raises(StoreUnavailable):
        await sqlite_store.upsert(1, 10, lambda _prior: replace(record, ease_factor=0.5))
    assert await sqlite_store.get(1, 10) is None


@pytest.mark.asyncio
async def test_listing(sqlite_store, record):
    for r in (
        replace(record, card_id=12),
        record,
        replace(record, card_id=20, deck_id=2),
        replace(record, user_id=2),
    ):
        await sqlite_store.upsert(r.user_id, r.card_id, lambda _prior, r=r: r)

    assert [r.card_id for r in await sqlite_store.list_by_deck(1, 1)] == [10, 12]
    assert [r.card_id for r in await sqlite_store.list_by_user(1)] == [10, 12, 20]
    assert await sqlite_store.list_by_deck(3, 1) == []


@pytest.mark.asyncio
async def test_locked_database_is_unavailable(sqlite_store, db_path, record):
    await sqlite_store.get(1, 10)
    blocker = sqlite3.connect(str(db_path), isolation_level=None)
    try:
        blocker.execute("BEGIN EXCLUSIVE")
        with pytest.raises(StoreUnavailable):
            await sqlite_store.upsert(1, 10, lambda _prior: record)
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()

    await sqlite_store.upsert(1, 10, lambda _prior: record)
    assert await sqlite_store.get(1, 10) == record


@pytest.mark.asyncio
async def test_unopenable_path_is_unavailable(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = SqliteProgressStore(blocker / "progress.db")

    with pytest.raises(StoreUnavailable):
        await store.get(1, 10)


@pytest.mark.asyncio
async def test_upsert_returns_stored_record(sqlite_store, record):
    naive = replace(record, updated_at=record.updated_at.replace(tzinfo=None))

    saved = await sqlite_store.upsert(1, 10, lambda _prior: naive)

    assert saved.updated_at.tzinfo == timezone.utc
    assert saved == await sqlite_store.get(1, 10)


@pytest.mark.asyncio
async def test_naive_now_end_to_end(sqlite_store, catalog):
    reviews = ReviewService(sqlite_store, catalog)
    selector = DueCardSelector(sqlite_store, catalog)
    aggregator = ProgressAggregator(sqlite_store, catalog)
    naive = datetime(2024, 3, 10, 9, 0)

    record = await reviews.record_review(1, 10, 5, now=naive)

    assert record == await sqlite_store.get(1, 10)
    queue = await selector.select_due(1, 1, now=naive + timedelta(days=2))
    assert [c.id for c in queue] == [11, 12, 10]
    stats = await aggregator.deck_progress(1, 1, now=naive)
    assert stats.last_studied == naive.replace(tzinfo=timezone.utc)
    assert stats.review_queue_size == 2


def test_concurrent_writers_serialize(db_path, catalog, now):
    workers, reviews_each = 4, 10
    # Create the schema once before the writers race
    asyncio.run(SqliteProgressStore(db_path).get(1, 10))
    errors = []

    def review_many():
        service = ReviewService(SqliteProgressStore(db_path, timeout=30), catalog)

        async def run():
            for _ in range(reviews_each):
                await service.record_review(1, 10, 4, now=now)

        try:
            asyncio.run(run())
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=review_many) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = asyncio.run(SqliteProgressStore(db_path).get(1, 10))
    assert final.review_count == workers * reviews_each

    state = None
    for _ in range(workers * reviews_each):
        result = schedule(4, state, now)
        state = PriorState(result.interval, result.ease_factor)
    assert (final.interval, final.ease_factor) == (state.interval, state.ease_factor)
