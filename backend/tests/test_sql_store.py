import asyncio
from datetime import date

import pytest

from sentiment_monitor.services.aggregator import AggregationService
from sentiment_monitor.storage.base import create_store
from sentiment_monitor.storage.memory import InMemoryStore
from sentiment_monitor.storage.sql import SqlStore


@pytest.fixture
def sql_store():
    store = SqlStore("sqlite://")
    yield store
    asyncio.run(store.close())


def test_insert_is_deduplicated_on_id(sql_store, make_item):
    item = make_item(item_id="t3_abc", content="first")

    assert asyncio.run(sql_store.insert_scored_item(item)) is True
    assert asyncio.run(sql_store.insert_scored_item(item)) is False
    assert asyncio.run(sql_store.has_scored_item("t3_abc")) is True
    assert asyncio.run(sql_store.has_scored_item("missing")) is False


def test_items_round_trip_in_timestamp_order(sql_store, make_item):
    day = date(2024, 1, 1)
    late = make_item(day=day, second=500, label="negative", type="comment")
    early = make_item(day=day, second=100, label="positive")
    other_day = make_item(day=date(2024, 1, 2))
    for item in (late, early, other_day):
        asyncio.run(sql_store.insert_scored_item(item))

    items = asyncio.run(sql_store.get_scored_items("ClaudeAI", day))

    assert items == [early, late]


def test_upsert_replaces_the_row(sql_store, make_aggregate):
    day = date(2024, 1, 1)
    asyncio.run(sql_store.upsert_daily_aggregate(make_aggregate("ClaudeAI", day, total=3)))
    replacement = make_aggregate("ClaudeAI", day, total=7, score=0.25, keywords=[("opus", 4), ("limits", 2)])
    asyncio.run(sql_store.upsert_daily_aggregate(replacement))

    rows = asyncio.run(sql_store.get_daily_aggregates("ClaudeAI", day, day))

    assert rows == [replacement]


def test_aggregate_range_is_inclusive_and_ascending(sql_store, make_aggregate):
    for d in (4, 1, 2, 9):
        asyncio.run(sql_store.upsert_daily_aggregate(make_aggregate("ClaudeAI", date(2024, 1, d))))
    asyncio.run(sql_store.upsert_daily_aggregate(make_aggregate("ClaudeCode", date(2024, 1, 3))))

    rows = asyncio.run(sql_store.get_daily_aggregates("ClaudeAI", date(2024, 1, 1), date(2024, 1, 4)))

    assert [r.date for r in rows] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4)]


def test_clear_drops_everything(sql_store, make_item, make_aggregate):
    item = make_item()
    asyncio.run(sql_store.insert_scored_item(item))
    asyncio.run(sql_store.upsert_daily_aggregate(make_aggregate("ClaudeAI", date(2024, 1, 1))))

    asyncio.run(sql_store.clear())

    assert asyncio.run(sql_store.has_scored_item(item.id)) is False
    assert asyncio.run(sql_store.get_daily_aggregates("ClaudeAI", date(2024, 1, 1), date(2024, 1, 1))) == []


def test_aggregator_over_sql_matches_memory(sql_store, settings, make_item):
    day = date(2024, 1, 1)
    items = [
        make_item(day=day, label="positive", content="opus handles refactors"),
        make_item(day=day, label="negative", content="rate limits again"),
        make_item(day=day, label="neutral", content="refactors and limits"),
    ]
    memory = InMemoryStore()
    for item in items:
        asyncio.run(sql_store.insert_scored_item(item))
        asyncio.run(memory.insert_scored_item(item))

    from_sql = asyncio.run(AggregationService(sql_store, settings).compute_daily_aggregate("ClaudeAI", day))
    from_memory = asyncio.run(AggregationService(memory, settings).compute_daily_aggregate("ClaudeAI", day))

    assert from_sql == from_memory
    assert asyncio.run(sql_store.get_daily_aggregates("ClaudeAI", day, day)) == [from_sql]


def test_create_store_picks_backend(settings):
    assert isinstance(create_store(settings), InMemoryStore)

    settings.STORAGE_BACKEND = "SQL"
    settings.DATABASE_URL = "sqlite://"
    store = create_store(settings)
    assert isinstance(store, SqlStore)
    asyncio.run(store.close())

    settings.STORAGE_BACKEND = "redis"
    with pytest.raises(ValueError):
        create_store(settings)
