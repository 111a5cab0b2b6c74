"""
Daily rollup, cross-subreddit merge and summary/trend math.

Everything here is pure and synchronous; storage access lives in
``sentiment_monitor.services.aggregator``.
"""
from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Sequence

from sentiment_monitor.config import ALL_SUBREDDITS
from sentiment_monitor.core.keywords import (
    DEFAULT_STOPWORDS,
    extract_keywords,
    merge_keyword_counts,
)
from sentiment_monitor.models import LABELS, DailyAggregate, DashboardSummary, ScoredItem


def calculate_item_contribution(item: ScoredItem) -> float:
    """
    Confidence-weighted polarity of a single item.

    Args:
        item: ScoredItem with sentiment breakdown

    Returns:
        (p_positive - p_negative) * confidence
    """
    s = item.sentiment
    return (s.positive - s.negative) * s.confidence


def build_daily_aggregate(
    subreddit: str,
    day: date,
    items: Sequence[ScoredItem],
    stopwords: Iterable[str] = DEFAULT_STOPWORDS,
    min_length: int = 4,
    top_n: int = 10,
) -> DailyAggregate:
    """
    Roll one (subreddit, day) worth of scored items into a DailyAggregate.

    The sentiment score is the sum of confidence-weighted polarities divided
    by the item count (not by the sum of confidences). An empty item set
    yields a zero-valued aggregate.

    Args:
        subreddit: Subreddit the items belong to
        day: UTC calendar day
        items: All scored items for that key
        stopwords: Keyword stopword set
        min_length: Minimum keyword length
        top_n: Number of keywords kept

    Returns:
        DailyAggregate for the key
    """
    total = len(items)
    if total == 0:
        return DailyAggregate.empty(subreddit, day)

    counts = dict.fromkeys(LABELS, 0)
    for item in items:
        label = item.sentiment.label
        if label not in counts:
            raise ValueError(f"Unknown sentiment label {label!r} on item {item.id}")
        counts[label] += 1

    sentiment_score = sum(calculate_item_contribution(i) for i in items) / total
    average_confidence = sum(i.sentiment.confidence for i in items) / total

    return DailyAggregate(
        date=day,
        subreddit=subreddit,
        sentiment_score=sentiment_score,
        positive_count=counts["positive"],
        neutral_count=counts["neutral"],
        negative_count=counts["negative"],
        total_count=total,
        average_confidence=average_confidence,
        top_keywords=tuple(
            extract_keywords(items, stopwords=stopwords, min_length=min_length, top_n=top_n)
        ),
    )


def weighted_mean(pairs: Iterable[tuple[float, int]]) -> float:
    """Count-weighted mean of (value, weight) pairs; 0.0 when total weight is 0."""
    numerator = 0.0
    denominator = 0
    for value, weight in pairs:
        numerator += value * weight
        denominator += weight
    return numerator / denominator if denominator else 0.0


def merge_daily_aggregates(
    day: date, rows: Sequence[DailyAggregate], top_n: int = 10
) -> DailyAggregate:
    """
    Merge same-date rows from several subreddits into one "all" row.

    Counts are summed; sentiment and confidence are weighted by each row's
    total_count; keyword counts are summed and re-ranked.
    """
    return DailyAggregate(
        date=day,
        subreddit=ALL_SUBREDDITS,
        sentiment_score=weighted_mean((r.sentiment_score, r.total_count) for r in rows),
        positive_count=sum(r.positive_count for r in rows),
        neutral_count=sum(r.neutral_count for r in rows),
        negative_count=sum(r.negative_count for r in rows),
        total_count=sum(r.total_count for r in rows),
        average_confidence=weighted_mean((r.average_confidence, r.total_count) for r in rows),
        top_keywords=tuple(merge_keyword_counts((r.top_keywords for r in rows), top_n=top_n)),
    )


def combine_series(
    series: Iterable[Sequence[DailyAggregate]], top_n: int = 10
) -> List[DailyAggregate]:
    """
    Combine per-subreddit series into one ascending "all" series.

    A date appears in the output if it appears in any input series.
    """
    by_date: Dict[date, List[DailyAggregate]] = {}
    for rows in series:
        for row in rows:
            by_date.setdefault(row.date, []).append(row)

    return [merge_daily_aggregates(day, by_date[day], top_n=top_n) for day in sorted(by_date)]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def calculate_trend_direction(scores: Sequence[float], threshold: float = 0.1) -> str:
    """
    Compare the mean of the second half of a series against the first.

    The split index is floor(n / 2). An empty half borrows the other half's
    mean, so a single-entry series is "stable".

    Returns:
        "up", "down" or "stable"
    """
    if not scores:
        return "stable"

    midpoint = len(scores) // 2
    first, second = scores[:midpoint], scores[midpoint:]
    second_avg = _mean(second)
    first_avg = _mean(first) if first else second_avg

    if second_avg > first_avg + threshold:
        return "up"
    if second_avg < first_avg - threshold:
        return "down"
    return "stable"


def summarize(series: Sequence[DailyAggregate], trend_threshold: float = 0.1) -> DashboardSummary:
    """
    Reduce a date-ordered series into dashboard headline metrics.

    Args:
        series: DailyAggregate rows ordered by date
        trend_threshold: Hysteresis band for the trend direction

    Returns:
        DashboardSummary (all zeros and "stable" for an empty series)
    """
    if not series:
        return DashboardSummary()

    total_volume = sum(a.total_count for a in series)
    scores = [a.sentiment_score for a in series]

    if total_volume:
        positive_pct = sum(a.positive_count for a in series) / total_volume * 100
        negative_pct = sum(a.negative_count for a in series) / total_volume * 100
    else:
        positive_pct = negative_pct = 0.0

    return DashboardSummary(
        average_sentiment=_mean(scores),
        total_volume=total_volume,
        positive_percentage=positive_pct,
        negative_percentage=negative_pct,
        trend_direction=calculate_trend_direction(scores, trend_threshold),
    )
