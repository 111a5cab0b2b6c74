"""
CSV export of daily aggregates.

Column order and decimal precision are a public contract: downstream
consumers parse the file mechanically.
"""
from __future__ import annotations

import csv
import io
from typing import Iterable, List

from sentiment_monitor.models import DailyAggregate


CSV_HEADER = [
    "Date",
    "Subreddit",
    "Sentiment Score",
    "Volume",
    "Positive Count",
    "Neutral Count",
    "Negative Count",
    "Positive %",
    "Negative %",
    "Avg Confidence",
]


def _percent(part: int, total: int) -> str:
    return f"{(part / total * 100) if total else 0.0:.1f}%"


def aggregate_to_row(agg: DailyAggregate) -> List[str]:
    return [
        agg.date.isoformat(),
        agg.subreddit,
        f"{agg.sentiment_score:.3f}",
        str(agg.total_count),
        str(agg.positive_count),
        str(agg.neutral_count),
        str(agg.negative_count),
        _percent(agg.positive_count, agg.total_count),
        _percent(agg.negative_count, agg.total_count),
        f"{agg.average_confidence:.3f}",
    ]


def aggregates_to_csv(aggregates: Iterable[DailyAggregate]) -> str:
    """
    Render aggregates as CSV text, header first, rows joined with newlines.

    Args:
        aggregates: Rows in the order they should appear

    Returns:
        CSV document without a trailing newline
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for agg in aggregates:
        writer.writerow(aggregate_to_row(agg))
    return buffer.getvalue().rstrip("\n")


def export_filename(subreddit: str, time_range: str) -> str:
    return f"sentiment-{subreddit}-{time_range}.csv"
