from datetime import date, timedelta

import pytest

from sentiment_monitor.config import Settings
from sentiment_monitor.utils import (
    InvalidQueryError,
    day_bounds,
    day_of,
    iter_days,
    make_cache_key,
    normalize_text,
    parse_day,
    resolve_subreddit,
    resolve_time_range,
)

TRACKED = ["ClaudeAI", "ClaudeCode", "Anthropic"]


def test_day_of_uses_utc():
    start, end = day_bounds(date(2024, 3, 10))

    assert day_of(start) == date(2024, 3, 10)
    assert day_of(end - 1) == date(2024, 3, 10)
    assert day_of(end) == date(2024, 3, 11)
    assert end - start == 86400


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-31", date(2024, 1, 31)),
        (" 2024-01-31 ", date(2024, 1, 31)),
        ("2024-01-31T23:30:00-02:00", date(2024, 2, 1)),
    ],
)
def test_parse_day(value, expected):
    assert parse_day(value) == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-01"])
def test_parse_day_rejects(value):
    with pytest.raises(InvalidQueryError):
        parse_day(value)


def test_time_range_window():
    today = date(2024, 3, 31)

    assert resolve_time_range("7d", today) == (date(2024, 3, 24), today)
    assert resolve_time_range("30D", today) == (date(2024, 3, 1), today)
    assert resolve_time_range("90d", today)[0] == date(2024, 1, 1)
    with pytest.raises(InvalidQueryError):
        resolve_time_range("1y", today)


def test_resolve_subreddit():
    assert resolve_subreddit(None, TRACKED) == "all"
    assert resolve_subreddit("ALL", TRACKED) == "all"
    assert resolve_subreddit("claudecode", TRACKED) == "ClaudeCode"
    assert resolve_subreddit("r/Anthropic", TRACKED) == "Anthropic"
    with pytest.raises(InvalidQueryError):
        resolve_subreddit("python", TRACKED)


def test_iter_days_is_inclusive():
    assert list(iter_days(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1),
    ]
    assert list(iter_days(date(2024, 1, 2), date(2024, 1, 1))) == []


def test_cache_key_includes_context():
    assert make_cache_key("text") != make_cache_key("text", "title")
    assert make_cache_key("text", "title") == make_cache_key("text", "title")
    assert normalize_text("  a \n\t b  ") == "a b"


def test_settings_lists_are_parsed():
    settings = Settings(
        _env_file=None, TRACKED_SUBREDDITS=" ClaudeAI, ,ClaudeCode ", EXTRA_STOPWORDS="Claude,AI",
        CORS_ALLOW_ORIGINS="",
    )

    assert settings.tracked_subreddits == ["ClaudeAI", "ClaudeCode"]
    assert settings.extra_stopwords == ["claude", "ai"]
    assert settings.cors_allow_origins == ["*"]


def test_iter_days_stops_at_the_last_representable_day():
    assert list(iter_days(date.max - timedelta(days=1), date.max)) == [date.max - timedelta(days=1), date.max]
