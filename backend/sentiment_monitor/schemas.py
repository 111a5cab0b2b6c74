# sentiment_monitor/schemas.py
import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python; reads attributes off dataclasses
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class KeywordOut(ApiModel):
    keyword: str
    count: int


class DailyAggregateOut(ApiModel):
    date: dt.date
    subreddit: str
    sentiment_score: float
    positive_count: int
    neutral_count: int
    negative_count: int
    total_count: int
    average_confidence: float
    top_keywords: List[KeywordOut] = Field(default_factory=list)


class SummaryOut(ApiModel):
    average_sentiment: float
    total_volume: int
    positive_percentage: float
    negative_percentage: float
    trend_direction: Literal["up", "down", "stable"]


class AggregateData(ApiModel):
    subreddit: str
    time_range: str
    aggregates: List[DailyAggregateOut]
    summary: SummaryOut


class ResponseMeta(ApiModel):
    last_updated: str
    cache_hit: bool = False


class AggregateResponse(ApiModel):
    success: bool = True
    data: AggregateData
    meta: ResponseMeta


class ChartPoint(ApiModel):
    date: dt.date
    sentiment: float
    volume: int
    subreddit: Optional[str] = None


class DashboardDataResponse(ApiModel):
    subreddit: str
    time_range: str
    data: List[ChartPoint]
    summary: SummaryOut


class SentimentOut(ApiModel):
    label: Literal["positive", "neutral", "negative"]
    confidence: float
    positive: float
    neutral: float
    negative: float


class DrillDownItem(ApiModel):
    id: str
    subreddit: str
    author: str
    content: str
    context: str = ""
    score: int
    permalink: str
    timestamp: int
    type: Literal["post", "comment"]
    sentiment: SentimentOut


class DrillDownResponse(ApiModel):
    date: dt.date
    subreddit: str
    posts: List[DrillDownItem]
    comments: List[DrillDownItem]


class SampleItem(ApiModel):
    id: str
    author: str
    content: str
    sentiment: Literal["positive", "neutral", "negative"]
    confidence: float
    score: int
    permalink: str
    timestamp: int


class SamplesData(ApiModel):
    subreddit: str
    date: dt.date
    samples: List[SampleItem]
    total_count: int


class SamplesResponse(ApiModel):
    success: bool = True
    data: SamplesData
    meta: ResponseMeta


class RecomputeRequest(ApiModel):
    start_date: dt.date
    end_date: dt.date
    subreddits: Optional[List[str]] = None


class RecomputeFailureOut(ApiModel):
    subreddit: str
    date: dt.date
    error: str


class RecomputeResponse(ApiModel):
    success: bool = True
    total: int
    completed: int
    succeeded: int
    failed: List[RecomputeFailureOut]


class BackfillRequest(ApiModel):
    days_back: int = Field(default=90, ge=1, le=365)


class SeedRequest(ApiModel):
    days: int = Field(default=90, ge=1, le=365)
    seed: Optional[int] = None


class IngestSubredditOut(ApiModel):
    subreddit: str
    new_posts: int
    new_comments: int
    analyzed: int
    failed: bool = False


class IngestResponse(ApiModel):
    success: bool = True
    timestamp: str
    days_back: Optional[int] = None
    results: List[IngestSubredditOut]


class MessageResponse(ApiModel):
    success: bool = True
    message: str
