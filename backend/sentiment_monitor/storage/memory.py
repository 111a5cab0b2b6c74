"""
Dictionary-backed store used by tests and demo deployments.
"""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Tuple

from sentiment_monitor.models import DailyAggregate, ScoredItem
from sentiment_monitor.storage.base import Store
from sentiment_monitor.utils import day_of


class InMemoryStore(Store):
    def __init__(self) -> None:
        self._items_by_id: Dict[str, ScoredItem] = {}
        self._items_by_day: Dict[Tuple[str, date], List[ScoredItem]] = {}
        self._aggregates: Dict[Tuple[str, date], DailyAggregate] = {}

    async def insert_scored_item(self, item: ScoredItem) -> bool:
        if item.id in self._items_by_id:
            return False
        self._items_by_id[item.id] = item
        self._items_by_day.setdefault((item.subreddit, day_of(item.timestamp)), []).append(item)
        return True

    async def has_scored_item(self, item_id: str) -> bool:
        return item_id in self._items_by_id

    async def get_scored_items(self, subreddit: str, day: date) -> List[ScoredItem]:
        items = self._items_by_day.get((subreddit, day), [])
        return sorted(items, key=lambda i: (i.timestamp, i.id))

    async def upsert_daily_aggregate(self, aggregate: DailyAggregate) -> None:
        self._aggregates[(aggregate.subreddit, aggregate.date)] = aggregate

    async def get_daily_aggregates(
        self, subreddit: str, start: date, end: date
    ) -> List[DailyAggregate]:
        rows = [
            agg for (sub, day), agg in self._aggregates.items()
            if sub == subreddit and start <= day <= end
        ]
        return sorted(rows, key=lambda a: a.date)

    async def clear(self) -> None:
        self._items_by_id.clear()
        self._items_by_day.clear()
        self._aggregates.clear()
