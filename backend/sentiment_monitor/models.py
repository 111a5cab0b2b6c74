"""
File: sentiment_monitor/models.py
Internal data structures used during ingestion, scoring and aggregation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple


JsonDict = Dict[str, Any]

LABELS = ("positive", "neutral", "negative")


@dataclass(frozen=True)
class SentimentScore:
    """Scorer output for a single post/comment.

    positive + neutral + negative sum to 1 (within float tolerance).
    """

    label: str  # "positive" | "neutral" | "negative"
    confidence: float
    positive: float
    neutral: float
    negative: float


@dataclass(frozen=True)
class ScoredItem:
    id: str
    subreddit: str
    timestamp: int  # seconds since epoch, UTC
    author: str
    content: str
    score: int  # upstream popularity (upvotes - downvotes)
    permalink: str
    type: str  # "post" | "comment"
    sentiment: SentimentScore
    context: str = ""  # post title for comments, title for posts


@dataclass(frozen=True)
class KeywordCount:
    keyword: str
    count: int


@dataclass(frozen=True)
class DailyAggregate:
    """One (subreddit, date) rollup. subreddit is "all" for combined rows."""

    date: date
    subreddit: str
    sentiment_score: float
    positive_count: int
    neutral_count: int
    negative_count: int
    total_count: int
    average_confidence: float
    top_keywords: Tuple[KeywordCount, ...] = ()

    @classmethod
    def empty(cls, subreddit: str, day: date) -> "DailyAggregate":
        return cls(
            date=day,
            subreddit=subreddit,
            sentiment_score=0.0,
            positive_count=0,
            neutral_count=0,
            negative_count=0,
            total_count=0,
            average_confidence=0.0,
        )


@dataclass(frozen=True)
class DashboardSummary:
    average_sentiment: float = 0.0
    total_volume: int = 0
    positive_percentage: float = 0.0
    negative_percentage: float = 0.0
    trend_direction: str = "stable"  # "up" | "down" | "stable"


@dataclass
class RecomputeFailure:
    subreddit: str
    date: date
    error: str


@dataclass
class RecomputeReport:
    total: int = 0
    completed: int = 0
    failed: List[RecomputeFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.completed - len(self.failed)


@dataclass
class RedditPost:
    """Raw listing entry before scoring."""

    id: str
    subreddit: str
    timestamp: int
    author: str
    title: str
    body: str
    score: int
    num_comments: int
    permalink: str
    flair: Optional[str] = None
    is_deleted: bool = False
    is_removed: bool = False


@dataclass
class RedditComment:
    id: str
    subreddit: str
    timestamp: int
    author: str
    body: str
    score: int
    parent_id: str
    permalink: str
    is_deleted: bool = False


__all__ = [
    "LABELS",
    "JsonDict",
    "SentimentScore",
    "ScoredItem",
    "KeywordCount",
    "DailyAggregate",
    "DashboardSummary",
    "RecomputeFailure",
    "RecomputeReport",
    "RedditPost",
    "RedditComment",
]
