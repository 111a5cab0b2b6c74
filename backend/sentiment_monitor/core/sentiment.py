"""
Sentiment breakdown helpers shared by the LLM scorer and the fallback path.

Turns raw probability triples into a normalised SentimentScore and provides
the keyword heuristic used when no LLM key is configured.
"""
from __future__ import annotations

from typing import Tuple

from sentiment_monitor.models import SentimentScore
from sentiment_monitor.utils import clamp_to_unit_range


POSITIVE_CUES = (
    "love", "great", "amazing", "awesome", "best", "excellent", "helpful",
    "faster", "impressive", "works well", "thank",
)
NEGATIVE_CUES = (
    "bug", "crash", "broken", "issue", "slow", "worse", "terrible", "hate",
    "frustrat", "annoying", "needs better", "fail",
)


def normalize_probabilities(positive: float, neutral: float, negative: float) -> Tuple[float, float, float]:
    """
    Clamp each probability to [0, 1] and rescale so the three sum to 1.

    Args:
        positive: Raw positive probability
        neutral: Raw neutral probability
        negative: Raw negative probability

    Returns:
        (p_pos, p_neu, p_neg); an all-zero input becomes pure neutral
    """
    p_pos = clamp_to_unit_range(positive)
    p_neu = clamp_to_unit_range(neutral)
    p_neg = clamp_to_unit_range(negative)
    total = p_pos + p_neu + p_neg
    if total <= 0:
        return 0.0, 1.0, 0.0
    return p_pos / total, p_neu / total, p_neg / total


def label_from_probabilities(p_positive: float, p_neutral: float, p_negative: float) -> str:
    """Strictly-largest probability wins; any tie resolves to neutral."""
    if p_positive > max(p_neutral, p_negative):
        return "positive"
    if p_negative > max(p_positive, p_neutral):
        return "negative"
    return "neutral"


def build_sentiment_score(
    positive: float, neutral: float, negative: float, confidence: float
) -> SentimentScore:
    p_pos, p_neu, p_neg = normalize_probabilities(positive, neutral, negative)
    return SentimentScore(
        label=label_from_probabilities(p_pos, p_neu, p_neg),
        confidence=clamp_to_unit_range(confidence),
        positive=p_pos,
        neutral=p_neu,
        negative=p_neg,
    )


def heuristic_sentiment(text: str) -> SentimentScore:
    """
    Cheap cue-word scorer used when the LLM is unavailable.

    Confidence is kept low (0.3) so these items weigh little in the daily
    confidence-weighted score.
    """
    lower = (text or "").lower()
    pos_hits = sum(1 for cue in POSITIVE_CUES if cue in lower)
    neg_hits = sum(1 for cue in NEGATIVE_CUES if cue in lower)

    if pos_hits > neg_hits:
        return build_sentiment_score(0.7, 0.2, 0.1, 0.3)
    if neg_hits > pos_hits:
        return build_sentiment_score(0.1, 0.2, 0.7, 0.3)
    return build_sentiment_score(0.15, 0.7, 0.15, 0.3)
