"""
Demo data generator: simulated scored Reddit items plus their aggregates.
"""
from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import List, Optional, Sequence

from sentiment_monitor.core.sentiment import build_sentiment_score
from sentiment_monitor.models import RecomputeReport, ScoredItem, SentimentScore
from sentiment_monitor.services.aggregator import AggregationService
from sentiment_monitor.utils import day_bounds, today_utc

logger = logging.getLogger(__name__)

SAMPLE_TEXTS = [
    ("Claude Code is amazing! It helps me code so much faster.", "positive"),
    ("I love using Claude Code for my projects.", "positive"),
    ("Claude Code has some bugs that need fixing.", "negative"),
    ("How do I use Claude Code with TypeScript?", "neutral"),
    ("Claude Code is the best AI coding assistant!", "positive"),
    ("Having issues with Claude Code crashing.", "negative"),
    ("Claude Code works well for most tasks.", "neutral"),
    ("Great experience with Claude Code so far!", "positive"),
    ("Claude Code needs better documentation.", "negative"),
    ("Just started using Claude Code.", "neutral"),
]


def sample_sentiment(label: str, rng: random.Random) -> SentimentScore:
    """Random breakdown whose dominant probability matches ``label``."""
    confidence = 0.6 + rng.random() * 0.4
    if label == "positive":
        probs = (0.6 + rng.random() * 0.4, rng.random() * 0.2, rng.random() * 0.2)
    elif label == "negative":
        probs = (rng.random() * 0.2, rng.random() * 0.2, 0.6 + rng.random() * 0.4)
    else:
        probs = (rng.random() * 0.3, 0.5 + rng.random() * 0.3, rng.random() * 0.3)
    score = build_sentiment_score(*probs, confidence=confidence)
    # keep the intended label even if normalisation produced a tie
    return SentimentScore(
        label=label,
        confidence=score.confidence,
        positive=score.positive,
        neutral=score.neutral,
        negative=score.negative,
    )


def generate_sample_items(
    subreddits: Sequence[str], days: int, rng: random.Random
) -> List[ScoredItem]:
    items: List[ScoredItem] = []
    today = today_utc()
    for offset in range(days):
        day = today - timedelta(days=offset)
        day_start, _ = day_bounds(day)
        for subreddit in subreddits:
            for i in range(5 + rng.randrange(10)):
                text, label = rng.choice(SAMPLE_TEXTS)
                items.append(
                    ScoredItem(
                        id=f"{subreddit}-{day.isoformat()}-{i}",
                        subreddit=subreddit,
                        timestamp=day_start + rng.randrange(86400),
                        author=f"user_{rng.randrange(1000)}",
                        content=text,
                        score=rng.randrange(100),
                        permalink=f"https://reddit.com/r/{subreddit}/comments/sample{i}",
                        type="post" if rng.random() > 0.5 else "comment",
                        sentiment=sample_sentiment(label, rng),
                    )
                )
    return items


async def seed_sample_data(
    aggregator: AggregationService,
    subreddits: Optional[Sequence[str]] = None,
    days: int = 90,
    seed: Optional[int] = None,
) -> RecomputeReport:
    """
    Insert ``days`` days of simulated items and aggregate them.

    Args:
        aggregator: Service whose store receives the items
        subreddits: Defaults to the tracked subreddits
        days: Number of days back from today (UTC), today included
        seed: Optional RNG seed for reproducible data

    Returns:
        RecomputeReport for the seeded window
    """
    names = list(subreddits or aggregator.tracked_subreddits)
    rng = random.Random(seed)
    logger.info("Initializing %d days of sample data...", days)

    items = generate_sample_items(names, days, rng)
    for item in items:
        await aggregator.store.insert_scored_item(item)

    end = today_utc()
    report = await aggregator.recompute_range(end - timedelta(days=max(days, 1) - 1), end, names)
    logger.info("Sample data initialization complete: %d items", len(items))
    return report
