"""
SQLAlchemy-backed store (SQLite by default, any SQLAlchemy URL works).

Sessions are synchronous; every public coroutine hands its blocking work to
a worker thread with ``asyncio.to_thread``.
"""
from __future__ import annotations

import asyncio
import logging
import datetime as dt
from typing import List

from sqlalchemy import JSON, Date, Float, Integer, String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from sentiment_monitor.models import DailyAggregate, KeywordCount, ScoredItem, SentimentScore
from sentiment_monitor.storage.base import Store
from sentiment_monitor.utils import day_of

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ScoredItemRow(Base):
    __tablename__ = "scored_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subreddit: Mapped[str] = mapped_column(String(100), index=True)
    day: Mapped[dt.date] = mapped_column(Date, index=True)
    timestamp: Mapped[int] = mapped_column(Integer)
    author: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text)
    context: Mapped[str] = mapped_column(Text, default="")
    score: Mapped[int] = mapped_column(Integer)
    permalink: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(10))
    label: Mapped[str] = mapped_column(String(10))
    confidence: Mapped[float] = mapped_column(Float)
    prob_positive: Mapped[float] = mapped_column(Float)
    prob_neutral: Mapped[float] = mapped_column(Float)
    prob_negative: Mapped[float] = mapped_column(Float)

    @classmethod
    def from_item(cls, item: ScoredItem) -> "ScoredItemRow":
        s = item.sentiment
        return cls(
            id=item.id,
            subreddit=item.subreddit,
            day=day_of(item.timestamp),
            timestamp=item.timestamp,
            author=item.author,
            content=item.content,
            context=item.context,
            score=item.score,
            permalink=item.permalink,
            type=item.type,
            label=s.label,
            confidence=s.confidence,
            prob_positive=s.positive,
            prob_neutral=s.neutral,
            prob_negative=s.negative,
        )

    def to_item(self) -> ScoredItem:
        return ScoredItem(
            id=self.id,
            subreddit=self.subreddit,
            timestamp=self.timestamp,
            author=self.author,
            content=self.content,
            context=self.context or "",
            score=self.score,
            permalink=self.permalink,
            type=self.type,
            sentiment=SentimentScore(
                label=self.label,
                confidence=self.confidence,
                positive=self.prob_positive,
                neutral=self.prob_neutral,
                negative=self.prob_negative,
            ),
        )


class DailyAggregateRow(Base):
    __tablename__ = "daily_aggregates"

    subreddit: Mapped[str] = mapped_column(String(100), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    sentiment_score: Mapped[float] = mapped_column(Float)
    positive_count: Mapped[int] = mapped_column(Integer)
    neutral_count: Mapped[int] = mapped_column(Integer)
    negative_count: Mapped[int] = mapped_column(Integer)
    total_count: Mapped[int] = mapped_column(Integer)
    average_confidence: Mapped[float] = mapped_column(Float)
    top_keywords: Mapped[list] = mapped_column(JSON, default=list)

    @classmethod
    def from_aggregate(cls, agg: DailyAggregate) -> "DailyAggregateRow":
        return cls(
            subreddit=agg.subreddit,
            date=agg.date,
            sentiment_score=agg.sentiment_score,
            positive_count=agg.positive_count,
            neutral_count=agg.neutral_count,
            negative_count=agg.negative_count,
            total_count=agg.total_count,
            average_confidence=agg.average_confidence,
            top_keywords=[[kw.keyword, kw.count] for kw in agg.top_keywords],
        )

    def to_aggregate(self) -> DailyAggregate:
        return DailyAggregate(
            date=self.date,
            subreddit=self.subreddit,
            sentiment_score=self.sentiment_score,
            positive_count=self.positive_count,
            neutral_count=self.neutral_count,
            negative_count=self.negative_count,
            total_count=self.total_count,
            average_confidence=self.average_confidence,
            top_keywords=tuple(KeywordCount(keyword=k, count=int(c)) for k, c in (self.top_keywords or [])),
        )


class SqlStore(Store):
    def __init__(self, database_url: str) -> None:
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, otherwise each thread sees an empty db
                engine_kwargs["poolclass"] = StaticPool

        self._engine = create_engine(database_url, **engine_kwargs)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        logger.info("SQL store ready at %s", self._engine.url.render_as_string(hide_password=True))

    def _insert(self, item: ScoredItem) -> bool:
        with self._sessions.begin() as session:
            if session.get(ScoredItemRow, item.id) is not None:
                return False
            session.add(ScoredItemRow.from_item(item))
            return True

    def _exists(self, item_id: str) -> bool:
        with Session(self._engine) as session:
            return session.get(ScoredItemRow, item_id) is not None

    def _items(self, subreddit: str, day: dt.date) -> List[ScoredItem]:
        stmt = (
            select(ScoredItemRow)
            .where(ScoredItemRow.subreddit == subreddit, ScoredItemRow.day == day)
            .order_by(ScoredItemRow.timestamp, ScoredItemRow.id)
        )
        with Session(self._engine) as session:
            return [row.to_item() for row in session.scalars(stmt)]

    def _upsert(self, aggregate: DailyAggregate) -> None:
        with self._sessions.begin() as session:
            session.merge(DailyAggregateRow.from_aggregate(aggregate))

    def _aggregates(self, subreddit: str, start: dt.date, end: dt.date) -> List[DailyAggregate]:
        stmt = (
            select(DailyAggregateRow)
            .where(
                DailyAggregateRow.subreddit == subreddit,
                DailyAggregateRow.date >= start,
                DailyAggregateRow.date <= end,
            )
            .order_by(DailyAggregateRow.date)
        )
        with Session(self._engine) as session:
            return [row.to_aggregate() for row in session.scalars(stmt)]

    def _clear(self) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(ScoredItemRow))
            session.execute(delete(DailyAggregateRow))

    async def insert_scored_item(self, item: ScoredItem) -> bool:
        return await asyncio.to_thread(self._insert, item)

    async def has_scored_item(self, item_id: str) -> bool:
        return await asyncio.to_thread(self._exists, item_id)

    async def get_scored_items(self, subreddit: str, day: dt.date) -> List[ScoredItem]:
        return await asyncio.to_thread(self._items, subreddit, day)

    async def upsert_daily_aggregate(self, aggregate: DailyAggregate) -> None:
        await asyncio.to_thread(self._upsert, aggregate)

    async def get_daily_aggregates(
        self, subreddit: str, start: dt.date, end: dt.date
    ) -> List[DailyAggregate]:
        return await asyncio.to_thread(self._aggregates, subreddit, start, end)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear)

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)
