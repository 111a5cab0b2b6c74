"""
LLM-powered sentiment scoring for Reddit posts and comments.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from sentiment_monitor.config import Settings
from sentiment_monitor.core.sentiment import build_sentiment_score, heuristic_sentiment
from sentiment_monitor.models import SentimentScore
from sentiment_monitor.utils import make_cache_key

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a sentiment analysis expert specializing in developer and AI community discussions. "
    "Analyze the sentiment of Reddit posts and comments about Claude, Claude Code and Anthropic products.\n\n"
    "Return ONLY a JSON object:\n"
    '{"sentiment": number between -1 and 1, '
    '"scores": {"positive": number, "negative": number, "neutral": number}, '
    '"confidence": number between 0 and 1, '
    '"reasoning": string (<= 25 words)}\n\n'
    "The three scores must sum to 1.0.\n"
    "Consider:\n"
    "- Technical feedback and bug reports (may be constructive rather than negative)\n"
    "- Feature requests (usually neutral to positive)\n"
    "- User satisfaction and frustration\n"
    "- Comparison with competitors"
)


class ScoringError(RuntimeError):
    """The scorer could not produce a valid result for an item."""


class _Breakdown(BaseModel):
    positive: float = Field(ge=0, le=1)
    negative: float = Field(ge=0, le=1)
    neutral: float = Field(ge=0, le=1)


class LLMSentimentOutput(BaseModel):
    sentiment: float = Field(ge=-1, le=1)
    scores: _Breakdown
    confidence: float = Field(ge=0, le=1)
    reasoning: str = ""


@dataclass
class ScoreRequest:
    id: str
    text: str
    context: Optional[str] = None
    kind: str = "post"  # "post" | "comment"


def build_user_prompt(text: str, context: Optional[str], kind: str) -> str:
    if context:
        return f'Context: "{context}"\n\nContent: "{text}"\n\nAnalyze the sentiment of this {kind}.'
    return f'Content: "{text}"\n\nAnalyze the sentiment of this {kind}.'


def parse_llm_output(raw: str) -> SentimentScore:
    """
    Validate the model's JSON reply and convert it to a SentimentScore.

    Raises:
        ScoringError: If the reply is not valid JSON or fails validation
    """
    try:
        data = LLMSentimentOutput.model_validate(json.loads(raw or "{}"))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ScoringError(f"Invalid scorer response: {e}") from e
    return build_sentiment_score(
        data.scores.positive, data.scores.neutral, data.scores.negative, data.confidence
    )


class SentimentScorer:
    """
    Scores text with OpenAI chat completions, caching by content hash.

    Without an OPENAI_API_KEY (and no injected client) the keyword
    heuristic in ``core.sentiment`` is used instead.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings
        self.model = settings.OPENAI_MODEL
        self.ttl_seconds = settings.SENTIMENT_CACHE_TTL_DAYS * 24 * 3600
        self.max_entries = max(1, settings.SENTIMENT_CACHE_MAX_ENTRIES)
        if client is None and settings.OPENAI_API_KEY:
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self._client = client
        self._cache: Dict[str, tuple[float, SentimentScore]] = {}

    @property
    def uses_llm(self) -> bool:
        return self._client is not None

    def _cached(self, key: str) -> Optional[SentimentScore]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, score = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._cache[key]
            return None
        return score

    def _purge_expired(self) -> None:
        now = time.monotonic()
        self._cache = {
            key: entry for key, entry in self._cache.items() if now - entry[0] <= self.ttl_seconds
        }

    def _remember(self, key: str, score: SentimentScore) -> None:
        """Cache a score; when full, drop expired entries and then the oldest ones."""
        if key not in self._cache and len(self._cache) >= self.max_entries:
            self._purge_expired()
            while len(self._cache) >= self.max_entries:
                # dicts keep insertion order, so the first key is the oldest
                del self._cache[next(iter(self._cache))]
        self._cache[key] = (time.monotonic(), score)

    async def _call_llm(self, text: str, context: Optional[str], kind: str) -> SentimentScore:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(text, context, kind)},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
                max_tokens=500,
            )
        except Exception as e:
            raise ScoringError(f"OpenAI request failed: {type(e).__name__}: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ScoringError("No response from OpenAI")
        return parse_llm_output(content)

    async def score(self, text: str, context: Optional[str] = None, kind: str = "post") -> SentimentScore:
        """
        Score one text.

        Args:
            text: Post or comment body
            context: Post title (for comments: the parent post title)
            kind: "post" or "comment"

        Returns:
            SentimentScore with normalised probabilities

        Raises:
            ScoringError: If the LLM call or its output is unusable
        """
        key = make_cache_key(text, context)
        cached = self._cached(key)
        if cached is not None:
            return cached

        if self._client is None:
            result = heuristic_sentiment(f"{context or ''} {text}")
        else:
            result = await self._call_llm(text, context, kind)

        self._remember(key, result)
        return result

    async def score_many(
        self, requests: List[ScoreRequest], batch_size: Optional[int] = None
    ) -> Dict[str, SentimentScore]:
        """
        Score requests batch by batch; failed items are logged and omitted.

        Returns:
            Mapping of request id to SentimentScore
        """
        size = max(1, batch_size or self.settings.SENTIMENT_BATCH_SIZE)
        results: Dict[str, SentimentScore] = {}

        for start in range(0, len(requests), size):
            batch = requests[start:start + size]
            outcomes = await asyncio.gather(
                *(self.score(r.text, r.context, r.kind) for r in batch),
                return_exceptions=True,
            )
            for request, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Failed to score %s %s: %s", request.kind, request.id, outcome)
                    continue
                results[request.id] = outcome
            logger.debug("Scored %d/%d items", min(start + size, len(requests)), len(requests))

        return results
