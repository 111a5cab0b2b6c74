"""
Aggregation service: store-facing side of the aggregation pipeline.

One instance is built per process by ``create_app`` and handed to request
handlers and the ingestion service; tests build their own instances around
an ``InMemoryStore``.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence

from sentiment_monitor.config import ALL_SUBREDDITS, Settings
from sentiment_monitor.core.aggregation import build_daily_aggregate, combine_series, summarize
from sentiment_monitor.core.keywords import DEFAULT_STOPWORDS
from sentiment_monitor.models import (
    DailyAggregate,
    DashboardSummary,
    RecomputeFailure,
    RecomputeReport,
    ScoredItem,
)
from sentiment_monitor.storage.base import Store
from sentiment_monitor.utils import InvalidQueryError, iter_days

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

DRILL_DOWN_LIMIT = 50

# one year of days, both ends included
MAX_RECOMPUTE_DAYS = 366


class AggregationService:
    def __init__(self, store: Store, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.stopwords = frozenset(DEFAULT_STOPWORDS | set(settings.extra_stopwords))

    @property
    def tracked_subreddits(self) -> List[str]:
        return self.settings.tracked_subreddits

    # -- daily aggregator -------------------------------------------------

    async def compute_daily_aggregate(self, subreddit: str, day: date) -> DailyAggregate:
        """
        Recompute and upsert the aggregate for one (subreddit, day) key.

        Args:
            subreddit: Concrete subreddit name (never "all")
            day: UTC calendar day

        Returns:
            The aggregate that was written
        """
        if subreddit == ALL_SUBREDDITS:
            raise InvalidQueryError('"all" is combined at read time and is never stored')

        items = await self.store.get_scored_items(subreddit, day)
        aggregate = build_daily_aggregate(
            subreddit,
            day,
            items,
            stopwords=self.stopwords,
            min_length=self.settings.KEYWORD_MIN_LENGTH,
            top_n=self.settings.KEYWORD_TOP_N,
        )
        await self.store.upsert_daily_aggregate(aggregate)
        return aggregate

    # -- range reader / combiner ------------------------------------------

    async def get_range(self, subreddit: str, start: date, end: date) -> List[DailyAggregate]:
        """Stored rows for one subreddit, ascending; missing days are absent."""
        _check_window(start, end)
        rows = await self.store.get_daily_aggregates(subreddit, start, end)
        return sorted(rows, key=lambda a: a.date)

    async def get_combined_range(
        self, subreddits: Iterable[str], start: date, end: date
    ) -> List[DailyAggregate]:
        """
        Merge same-date rows of several subreddits into one "all" series.

        Sentiment and confidence are weighted by each row's total_count.
        """
        _check_window(start, end)
        names = list(dict.fromkeys(subreddits))
        series = await asyncio.gather(*(self.get_range(name, start, end) for name in names))
        return combine_series(series, top_n=self.settings.KEYWORD_TOP_N)

    async def get_series(self, subreddit: str, start: date, end: date) -> List[DailyAggregate]:
        """Dispatch the "all" sentinel to the combiner, anything else to get_range."""
        if subreddit == ALL_SUBREDDITS:
            return await self.get_combined_range(self.tracked_subreddits, start, end)
        return await self.get_range(subreddit, start, end)

    def summarize(self, series: Sequence[DailyAggregate]) -> DashboardSummary:
        return summarize(series, trend_threshold=self.settings.TREND_THRESHOLD)

    # -- drill-down -------------------------------------------------------

    async def get_items_for_day(self, subreddit: str, day: date) -> List[ScoredItem]:
        """Scored items for one day; "all" unions every tracked subreddit."""
        if subreddit != ALL_SUBREDDITS:
            return await self.store.get_scored_items(subreddit, day)
        per_sub = await asyncio.gather(
            *(self.store.get_scored_items(name, day) for name in self.tracked_subreddits)
        )
        return [item for items in per_sub for item in items]

    async def get_drill_down(
        self, subreddit: str, day: date, limit: int = DRILL_DOWN_LIMIT
    ) -> tuple[List[ScoredItem], List[ScoredItem]]:
        """
        Top posts and comments of a day, ranked by upstream score.

        Returns:
            (posts, comments), each sorted by score descending and capped at limit
        """
        items = await self.get_items_for_day(subreddit, day)
        ranked = sorted(items, key=lambda i: (-i.score, i.timestamp, i.id))
        posts = [i for i in ranked if i.type == "post"][:limit]
        comments = [i for i in ranked if i.type == "comment"][:limit]
        return posts, comments

    # -- recompute scheduler ----------------------------------------------

    async def recompute_range(
        self,
        start: date,
        end: date,
        subreddits: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> RecomputeReport:
        """
        Re-aggregate every (day, subreddit) pair in [start, end].

        Pairs are scheduled date-major on a pool bounded by
        RECOMPUTE_CONCURRENCY. A failing pair is logged and reported; the
        remaining pairs still run. Windows longer than MAX_RECOMPUTE_DAYS are
        rejected.

        Args:
            start: First day (inclusive)
            end: Last day (inclusive)
            subreddits: Concrete subreddit names
            on_progress: Called with (completed, total) after every pair; errors
                it raises are logged and do not stop the run

        Returns:
            RecomputeReport with totals and failed pairs
        """
        _check_window(start, end)
        span = (end - start).days + 1
        if span > MAX_RECOMPUTE_DAYS:
            raise InvalidQueryError(
                f"recompute window of {span} days exceeds the {MAX_RECOMPUTE_DAYS}-day limit"
            )
        units = [(day, sub) for day in iter_days(start, end) for sub in subreddits]
        report = RecomputeReport(total=len(units))
        sem = asyncio.Semaphore(max(1, self.settings.RECOMPUTE_CONCURRENCY))

        async def run_one(day: date, subreddit: str) -> None:
            async with sem:
                try:
                    await self.compute_daily_aggregate(subreddit, day)
                except Exception as e:
                    logger.error("Recompute failed for r/%s on %s: %s", subreddit, day, e, exc_info=True)
                    report.failed.append(RecomputeFailure(subreddit=subreddit, date=day, error=str(e)))
                # counter is only touched on the event loop thread
                report.completed += 1
                if on_progress:
                    try:
                        on_progress(report.completed, report.total)
                    except Exception:
                        logger.exception("Progress callback failed at %d/%d", report.completed, report.total)

        await asyncio.gather(*(run_one(day, sub) for day, sub in units))

        report.failed.sort(key=lambda f: (f.date, f.subreddit))
        logger.info(
            "Recomputed %d/%d aggregates for %s..%s (%d failed)",
            report.succeeded, report.total, start, end, len(report.failed),
        )
        return report


def _check_window(start: date, end: date) -> None:
    if start > end:
        raise InvalidQueryError(f"start date {start} is after end date {end}")
