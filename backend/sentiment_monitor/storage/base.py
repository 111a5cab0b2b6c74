"""
Storage interface shared by the in-memory and SQL backends.

All methods are coroutines: every store access is a suspension point for
the aggregation services even when the backend itself is synchronous.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List

from sentiment_monitor.config import Settings
from sentiment_monitor.models import DailyAggregate, ScoredItem


class Store(ABC):
    @abstractmethod
    async def insert_scored_item(self, item: ScoredItem) -> bool:
        """Insert an item; returns False (and changes nothing) if its id exists."""

    @abstractmethod
    async def has_scored_item(self, item_id: str) -> bool:
        ...

    @abstractmethod
    async def get_scored_items(self, subreddit: str, day: date) -> List[ScoredItem]:
        """All items of one UTC day, ordered by (timestamp, id)."""

    @abstractmethod
    async def upsert_daily_aggregate(self, aggregate: DailyAggregate) -> None:
        """Replace-or-insert keyed by (subreddit, date)."""

    @abstractmethod
    async def get_daily_aggregates(
        self, subreddit: str, start: date, end: date
    ) -> List[DailyAggregate]:
        """Stored rows for one subreddit in [start, end], ascending by date."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every stored item and aggregate."""

    async def close(self) -> None:
        return None


def create_store(settings: Settings) -> Store:
    """
    Build the store selected by STORAGE_BACKEND.

    Args:
        settings: Application settings

    Returns:
        InMemoryStore for "memory", SqlStore for "sql"
    """
    backend = settings.STORAGE_BACKEND.strip().lower()
    if backend == "memory":
        from sentiment_monitor.storage.memory import InMemoryStore
        return InMemoryStore()
    if backend == "sql":
        from sentiment_monitor.storage.sql import SqlStore
        return SqlStore(settings.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r}")
