import asyncio
import json
from types import SimpleNamespace

import pytest

from sentiment_monitor.core.sentiment import build_sentiment_score, heuristic_sentiment
from sentiment_monitor.services.scorer import (
    ScoreRequest,
    ScoringError,
    SentimentScorer,
    parse_llm_output,
)


def llm_reply(positive, neutral, negative, confidence=0.8, sentiment=0.0):
    return json.dumps({
        "sentiment": sentiment,
        "scores": {"positive": positive, "negative": negative, "neutral": neutral},
        "confidence": confidence,
        "reasoning": "test",
    })


class FakeCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        user_prompt = kwargs["messages"][-1]["content"]
        for needle, reply in self.replies.items():
            if needle in user_prompt:
                if isinstance(reply, Exception):
                    raise reply
                return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])
        raise AssertionError(f"unexpected prompt {user_prompt!r}")


def fake_client(replies):
    completions = FakeCompletions(replies)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_probabilities_are_normalised_and_labelled():
    score = build_sentiment_score(0.6, 0.3, 0.3, confidence=1.4)

    assert score.positive + score.neutral + score.negative == pytest.approx(1.0)
    assert score.positive == pytest.approx(0.5)
    assert score.label == "positive"
    assert score.confidence == 1.0


def test_tied_probabilities_label_neutral():
    assert build_sentiment_score(0.4, 0.2, 0.4, 0.5).label == "neutral"
    assert build_sentiment_score(0, 0, 0, 0.5).neutral == 1.0


def test_parse_rejects_bad_output():
    with pytest.raises(ScoringError):
        parse_llm_output("not json")
    with pytest.raises(ScoringError):
        parse_llm_output(json.dumps({"sentiment": 3, "scores": {}, "confidence": 0.5}))


def test_llm_score_is_cached(settings):
    client, completions = fake_client({"love it": llm_reply(0.8, 0.15, 0.05)})
    scorer = SentimentScorer(settings, client=client)

    first = asyncio.run(scorer.score("love it", context="Opus"))
    second = asyncio.run(scorer.score("love it", context="Opus"))

    assert first == second
    assert first.label == "positive"
    assert len(completions.calls) == 1
    call = completions.calls[0]
    assert call["model"] == settings.OPENAI_MODEL
    assert call["response_format"] == {"type": "json_object"}
    assert 'Context: "Opus"' in call["messages"][1]["content"]


def test_expired_cache_entries_are_rescored(settings):
    settings.SENTIMENT_CACHE_TTL_DAYS = 0
    client, completions = fake_client({"meh": llm_reply(0.1, 0.8, 0.1)})
    scorer = SentimentScorer(settings, client=client)

    asyncio.run(scorer.score("meh"))
    scorer._cache = {k: (stored - 1, v) for k, (stored, v) in scorer._cache.items()}
    asyncio.run(scorer.score("meh"))

    assert len(completions.calls) == 2


def test_api_failure_raises_scoring_error(settings):
    client, _ = fake_client({"boom": RuntimeError("503")})
    scorer = SentimentScorer(settings, client=client)

    with pytest.raises(ScoringError):
        asyncio.run(scorer.score("boom"))


def test_score_many_skips_failures(settings):
    client, _ = fake_client({
        "good": llm_reply(0.1, 0.1, 0.8),
        "garbage": "{oops",
        "down": RuntimeError("timeout"),
    })
    scorer = SentimentScorer(settings, client=client)
    requests = [
        ScoreRequest(id="a", text="good"),
        ScoreRequest(id="b", text="garbage"),
        ScoreRequest(id="c", text="down", kind="comment"),
    ]

    results = asyncio.run(scorer.score_many(requests, batch_size=2))

    assert list(results) == ["a"]
    assert results["a"].label == "negative"


def test_falls_back_to_heuristic_without_key(settings):
    scorer = SentimentScorer(settings)

    assert scorer.uses_llm is False
    assert asyncio.run(scorer.score("Having issues with Claude Code crashing.")).label == "negative"
    assert asyncio.run(scorer.score("I love using Claude Code")).label == "positive"
    assert heuristic_sentiment("Just started using it.").label == "neutral"


def test_cache_is_bounded(settings):
    settings.SENTIMENT_CACHE_MAX_ENTRIES = 3
    scorer = SentimentScorer(settings)

    for text in ("one", "two", "three", "four", "five"):
        asyncio.run(scorer.score(text))

    assert len(scorer._cache) == 3
    assert asyncio.run(scorer.score("five")) == heuristic_sentiment("five")


def test_expired_entries_are_purged_when_full(settings):
    settings.SENTIMENT_CACHE_MAX_ENTRIES = 2
    client, completions = fake_client({
        "alpha": llm_reply(0.8, 0.1, 0.1),
        "beta": llm_reply(0.1, 0.1, 0.8),
        "gamma": llm_reply(0.1, 0.8, 0.1),
    })
    scorer = SentimentScorer(settings, client=client)

    asyncio.run(scorer.score("alpha"))
    asyncio.run(scorer.score("beta"))
    # age every entry past the TTL
    scorer._cache = {k: (stored - scorer.ttl_seconds - 1, v) for k, (stored, v) in scorer._cache.items()}
    asyncio.run(scorer.score("gamma"))

    assert len(scorer._cache) == 1
    assert len(completions.calls) == 3
