"""
Frequency-based keyword extraction for daily keyword panels.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Sequence

from sentiment_monitor.models import KeywordCount, ScoredItem


DEFAULT_STOPWORDS = frozenset({
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in",
    "with", "to", "for", "of", "as", "by", "from", "it", "this", "that",
    "was", "are", "be", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "can", "may", "might",
})

# Anything that is not a letter, digit or whitespace (underscore included).
_STRIP_RE = re.compile(r"[^\w\s]|_")


def tokenize(text: str) -> List[str]:
    """Lower-case, strip punctuation and split on whitespace."""
    return _STRIP_RE.sub("", (text or "").lower()).split()


def rank_keywords(counts: Dict[str, int], top_n: int) -> List[KeywordCount]:
    """
    Order keyword counts descending by count.

    ``counts`` must preserve first-seen order; ``sorted`` is stable so ties
    keep that order.
    """
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [KeywordCount(keyword=k, count=c) for k, c in ranked[:max(0, top_n)]]


def extract_keywords(
    items: Sequence[ScoredItem],
    stopwords: Iterable[str] = DEFAULT_STOPWORDS,
    min_length: int = 4,
    top_n: int = 10,
) -> List[KeywordCount]:
    """
    Count surviving tokens across all items and return the top ``top_n``.

    Args:
        items: Scored items whose ``content`` is tokenized
        stopwords: Words to ignore (compared lower-cased)
        min_length: Tokens shorter than this are dropped
        top_n: Maximum number of keywords returned

    Returns:
        KeywordCount list, highest count first, ties in first-seen order
    """
    stop = {word.lower() for word in stopwords}
    counts: Dict[str, int] = {}

    for item in items:
        for token in tokenize(item.content):
            if len(token) < min_length or token in stop:
                continue
            counts[token] = counts.get(token, 0) + 1

    return rank_keywords(counts, top_n)


def merge_keyword_counts(
    keyword_lists: Iterable[Sequence[KeywordCount]], top_n: int = 10
) -> List[KeywordCount]:
    """Sum counts per keyword across ranked lists and re-rank."""
    counts: Dict[str, int] = {}
    for keywords in keyword_lists:
        for kw in keywords:
            counts[kw.keyword] = counts.get(kw.keyword, 0) + kw.count
    return rank_keywords(counts, top_n)
