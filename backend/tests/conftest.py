from datetime import date

import pytest

from sentiment_monitor.config import Settings
from sentiment_monitor.models import DailyAggregate, KeywordCount, ScoredItem
from sentiment_monitor.services.aggregator import AggregationService
from sentiment_monitor.storage.memory import InMemoryStore
from sentiment_monitor.core.sentiment import build_sentiment_score
from sentiment_monitor.utils import day_bounds

BREAKDOWNS = {
    "positive": (0.8, 0.1, 0.1),
    "neutral": (0.2, 0.6, 0.2),
    "negative": (0.1, 0.1, 0.8),
}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="",
        REDDIT_CLIENT_ID="",
        REDDIT_CLIENT_SECRET="",
        TRACKED_SUBREDDITS="ClaudeAI,ClaudeCode",
        DEFAULT_TIME_RANGE="30d",
        TREND_THRESHOLD=0.1,
        KEYWORD_MIN_LENGTH=4,
        KEYWORD_TOP_N=10,
        EXTRA_STOPWORDS="",
        RECOMPUTE_CONCURRENCY=4,
        STORAGE_BACKEND="memory",
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def aggregator(store, settings):
    return AggregationService(store, settings)


@pytest.fixture
def make_item():
    counter = {"n": 0}

    def _make(
        subreddit="ClaudeAI",
        day=date(2024, 1, 1),
        label="positive",
        content="claude code works",
        confidence=0.9,
        score=1,
        type="post",
        second=43200,
        item_id=None,
    ):
        counter["n"] += 1
        pos, neu, neg = BREAKDOWNS[label]
        return ScoredItem(
            id=item_id or f"{subreddit}-{day.isoformat()}-{counter['n']}",
            subreddit=subreddit,
            timestamp=day_bounds(day)[0] + second,
            author=f"user_{counter['n']}",
            content=content,
            score=score,
            permalink=f"https://reddit.com/r/{subreddit}/comments/{counter['n']}",
            type=type,
            sentiment=build_sentiment_score(pos, neu, neg, confidence),
        )

    return _make


@pytest.fixture
def make_aggregate():
    def _make(subreddit, day, total=10, score=0.0, confidence=0.5, positive=None, keywords=()):
        positive = total if positive is None else positive
        return DailyAggregate(
            date=day,
            subreddit=subreddit,
            sentiment_score=score,
            positive_count=positive,
            neutral_count=total - positive,
            negative_count=0,
            total_count=total,
            average_confidence=confidence,
            top_keywords=tuple(KeywordCount(k, c) for k, c in keywords),
        )

    return _make
