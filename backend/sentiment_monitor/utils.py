"""
Shared utility functions for the sentiment monitor.

Calendar-day bucketing is always done in UTC: every timestamp -> date
conversion in the project goes through ``day_of``.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from hashlib import sha256
from typing import Iterator, List, Optional, Tuple

from dateutil import parser as dateparser

from sentiment_monitor.config import ALL_SUBREDDITS, TIME_RANGE_DAYS


class InvalidQueryError(ValueError):
    """Raised for malformed or missing caller input (dates, ranges, subreddits)."""


def now_utc() -> datetime:
    """
    Get current UTC datetime with timezone information.

    Returns:
        Current UTC datetime
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return now_utc().date()


def day_of(timestamp: float) -> date:
    """
    Map an epoch timestamp (seconds) to its UTC calendar day.

    Args:
        timestamp: Seconds since epoch

    Returns:
        The UTC date the timestamp falls on
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


def day_bounds(day: date) -> Tuple[int, int]:
    """Return [start, end) epoch seconds of a UTC calendar day."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return int(start.timestamp()), int((start + timedelta(days=1)).timestamp())


def parse_day(value: Optional[str]) -> date:
    """
    Parse an ISO calendar day (``YYYY-MM-DD``).

    Full ISO timestamps are accepted too and reduced to their UTC day.

    Raises:
        InvalidQueryError: If the value is missing or not an ISO date
    """
    if not value or not value.strip():
        raise InvalidQueryError("Missing required parameter: date")
    try:
        parsed = dateparser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise InvalidQueryError(f"Invalid date format: {value!r}") from e
    if parsed.tzinfo:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in [start, end] inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def resolve_time_range(time_range: str, today: Optional[date] = None) -> Tuple[date, date]:
    """
    Convert a ``7d``/``30d``/``90d`` token into an inclusive date window.

    Returns:
        (start, end) where end is today (UTC) and start is N days earlier
    """
    days = TIME_RANGE_DAYS.get((time_range or "").strip().lower())
    if days is None:
        raise InvalidQueryError(
            f"Invalid time range {time_range!r}; expected one of {', '.join(TIME_RANGE_DAYS)}"
        )
    end = today or today_utc()
    return end - timedelta(days=days), end


def resolve_subreddit(value: Optional[str], tracked: List[str]) -> str:
    """
    Normalise a subreddit query parameter against the tracked list.

    Matching is case-insensitive; the canonical tracked spelling is returned.
    Empty input means the combined "all" view.
    """
    name = (value or "").strip().removeprefix("r/")
    if not name or name.lower() == ALL_SUBREDDITS:
        return ALL_SUBREDDITS
    for candidate in tracked:
        if candidate.lower() == name.lower():
            return candidate
    raise InvalidQueryError(f"Unknown subreddit {value!r}")


def normalize_text(text: str | None) -> str:
    """
    Normalize whitespace in text content.

    Args:
        text: Input text string (can be None)

    Returns:
        Normalized text with single spaces and trimmed edges
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def make_cache_key(text: str, context: str | None = None) -> str:
    """SHA-256 hex digest of ``context|text`` (or just text)."""
    content = f"{context}|{text}" if context else text
    return sha256(content.encode("utf-8")).hexdigest()


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_to_unit_range(value: float) -> float:
    """
    Clamp a float value to the range [0.0, 1.0].

    Args:
        value: Input float value

    Returns:
        Value clamped to [0.0, 1.0] range
    """
    return clamp(value, 0.0, 1.0)
