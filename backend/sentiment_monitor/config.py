"""
Application configuration with environment variable support.
"""
from __future__ import annotations

import logging
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


TIME_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}

ALL_SUBREDDITS = "all"


def _split_csv(value: str) -> List[str]:
    """Split a comma separated setting into trimmed, non-empty parts."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # API Configuration
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    REDDIT_CLIENT_ID: str = ""
    REDDIT_CLIENT_SECRET: str = ""
    REDDIT_USER_AGENT: str = "sentiment-monitor/0.1"

    # Tracked communities
    TRACKED_SUBREDDITS: str = "ClaudeAI,ClaudeCode,Anthropic"

    # Dashboard / aggregation settings
    DEFAULT_TIME_RANGE: str = "30d"
    TREND_THRESHOLD: float = 0.1
    KEYWORD_MIN_LENGTH: int = 4
    KEYWORD_TOP_N: int = 10
    EXTRA_STOPWORDS: str = ""
    RECOMPUTE_CONCURRENCY: int = 4

    # Sentiment scoring
    SENTIMENT_CACHE_TTL_DAYS: float = 7.0
    SENTIMENT_BATCH_SIZE: int = 20
    SENTIMENT_CACHE_MAX_ENTRIES: int = 10000

    # Storage
    STORAGE_BACKEND: str = "sql"  # "sql" | "memory"
    DATABASE_URL: str = "sqlite:///./sentiment.db"

    # CORS Configuration
    CORS_ALLOW_ORIGINS: str = "*"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @property
    def tracked_subreddits(self) -> List[str]:
        return _split_csv(self.TRACKED_SUBREDDITS)

    @property
    def extra_stopwords(self) -> List[str]:
        return [word.lower() for word in _split_csv(self.EXTRA_STOPWORDS)]

    @property
    def cors_allow_origins(self) -> List[str]:
        return _split_csv(self.CORS_ALLOW_ORIGINS) or ["*"]


def configure_logging(settings: Settings) -> None:
    """Apply LOG_LEVEL / LOG_FORMAT to the root logger."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )
