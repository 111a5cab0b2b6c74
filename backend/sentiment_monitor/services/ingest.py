"""
Ingestion coordinator: fetch from Reddit, score, store, re-aggregate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from sentiment_monitor.config import Settings
from sentiment_monitor.models import RedditComment, RedditPost, ScoredItem, SentimentScore
from sentiment_monitor.services.aggregator import AggregationService
from sentiment_monitor.services.scorer import ScoreRequest, SentimentScorer
from sentiment_monitor.sources.reddit import RedditClient
from sentiment_monitor.storage.base import Store
from sentiment_monitor.utils import now_utc, today_utc

logger = logging.getLogger(__name__)

POLL_POST_LIMIT = 25


@dataclass
class SubredditIngestResult:
    subreddit: str
    new_posts: int = 0
    new_comments: int = 0
    analyzed: int = 0
    failed: bool = False


def deduplicate_posts(posts: Iterable[RedditPost]) -> List[RedditPost]:
    """
    Drop repeated ids (listing pages can overlap) and deleted/removed posts.

    Args:
        posts: Posts in fetch order

    Returns:
        Unique, live posts in first-seen order
    """
    seen: set[str] = set()
    unique: List[RedditPost] = []
    for post in posts:
        if not post.id or post.id in seen or post.is_deleted or post.is_removed:
            continue
        seen.add(post.id)
        unique.append(post)
    return unique


def post_request(post: RedditPost) -> ScoreRequest:
    return ScoreRequest(
        id=post.id,
        text=f"{post.title} {post.body}".strip(),
        context=post.title,
        kind="post",
    )


def comment_request(comment: RedditComment, post_title: str) -> ScoreRequest:
    return ScoreRequest(id=comment.id, text=comment.body, context=post_title or None, kind="comment")


def to_scored_item(
    source: RedditPost | RedditComment, request: ScoreRequest, sentiment: SentimentScore, subreddit: str
) -> ScoredItem:
    return ScoredItem(
        id=source.id,
        subreddit=source.subreddit or subreddit,
        timestamp=source.timestamp,
        author=source.author,
        content=request.text,
        context=request.context or "",
        score=source.score,
        permalink=source.permalink,
        type=request.kind,
        sentiment=sentiment,
    )


class IngestionService:
    def __init__(
        self,
        settings: Settings,
        store: Store,
        aggregator: AggregationService,
        scorer: SentimentScorer,
        reddit: RedditClient,
    ) -> None:
        self.settings = settings
        self.store = store
        self.aggregator = aggregator
        self.scorer = scorer
        self.reddit = reddit

    async def _collect(
        self, subreddit: str, posts: List[RedditPost]
    ) -> Tuple[List[Tuple[RedditPost | RedditComment, ScoreRequest]], int, int]:
        """Build score requests for unseen posts and their unseen top-level comments."""
        pending: List[Tuple[RedditPost | RedditComment, ScoreRequest]] = []
        new_posts = new_comments = 0

        for post in posts:
            if not await self.store.has_scored_item(post.id):
                pending.append((post, post_request(post)))
                new_posts += 1

            try:
                comments = await self.reddit.fetch_comments(subreddit, post.id)
            except Exception as e:
                logger.error("Failed to fetch comments for post %s: %s", post.id, e)
                continue

            for comment in comments:
                if comment.is_deleted or not comment.body:
                    continue
                if await self.store.has_scored_item(comment.id):
                    continue
                pending.append((comment, comment_request(comment, post.title)))
                new_comments += 1

        return pending, new_posts, new_comments

    async def _score_and_store(
        self, subreddit: str, pending: List[Tuple[RedditPost | RedditComment, ScoreRequest]]
    ) -> int:
        scores = await self.scorer.score_many([request for _, request in pending])
        stored = 0
        for source, request in pending:
            sentiment = scores.get(request.id)
            if sentiment is None:
                continue
            if await self.store.insert_scored_item(to_scored_item(source, request, sentiment, subreddit)):
                stored += 1
        return stored

    async def ingest_subreddit(self, subreddit: str, days_back: int, only_new: bool) -> SubredditIngestResult:
        since = now_utc() - timedelta(days=days_back)
        if only_new:
            posts, _ = await self.reddit.fetch_posts(subreddit, limit=POLL_POST_LIMIT)
            posts = [p for p in posts if p.timestamp >= since.timestamp()]
        else:
            posts = await self.reddit.fetch_posts_since(subreddit, since)
        posts = deduplicate_posts(posts)

        pending, new_posts, new_comments = await self._collect(subreddit, posts)
        logger.info(
            "r/%s: %d posts, %d comments queued for scoring", subreddit, new_posts, new_comments
        )
        analyzed = await self._score_and_store(subreddit, pending)

        end = today_utc()
        await self.aggregator.recompute_range(end - timedelta(days=days_back), end, [subreddit])

        return SubredditIngestResult(
            subreddit=subreddit, new_posts=new_posts, new_comments=new_comments, analyzed=analyzed
        )

    async def _run(self, days_back: int, only_new: bool, subreddits: Optional[List[str]]) -> List[SubredditIngestResult]:
        results: List[SubredditIngestResult] = []
        for subreddit in subreddits or self.settings.tracked_subreddits:
            try:
                results.append(await self.ingest_subreddit(subreddit, days_back, only_new))
            except Exception as e:
                logger.error("Failed to ingest r/%s: %s", subreddit, e, exc_info=True)
                results.append(SubredditIngestResult(subreddit=subreddit, failed=True))
        return results

    async def poll(self, subreddits: Optional[List[str]] = None) -> List[SubredditIngestResult]:
        """
        Pick up new posts/comments from the last day and refresh
        yesterday's and today's aggregates. Subreddits fail independently.
        """
        return await self._run(days_back=1, only_new=True, subreddits=subreddits)

    async def backfill(self, days_back: int = 90, subreddits: Optional[List[str]] = None) -> List[SubredditIngestResult]:
        """
        Fetch the full window, score ids not stored yet and recompute every
        day in it. Stored items are never sent to the scorer again.
        """
        logger.info("Starting backfill for %d days", days_back)
        return await self._run(days_back=days_back, only_new=False, subreddits=subreddits)
