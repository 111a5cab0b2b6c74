"""
Main FastAPI application and routing layer.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sentiment_monitor.config import ALL_SUBREDDITS, Settings, configure_logging
from sentiment_monitor.models import DailyAggregate, ScoredItem
from sentiment_monitor.schemas import (
    AggregateData,
    AggregateResponse,
    BackfillRequest,
    ChartPoint,
    DailyAggregateOut,
    DashboardDataResponse,
    DrillDownItem,
    DrillDownResponse,
    IngestResponse,
    IngestSubredditOut,
    MessageResponse,
    RecomputeFailureOut,
    RecomputeRequest,
    RecomputeResponse,
    ResponseMeta,
    SampleItem,
    SamplesData,
    SamplesResponse,
    SeedRequest,
    SummaryOut,
)
from sentiment_monitor.services.aggregator import AggregationService
from sentiment_monitor.services.export import aggregates_to_csv, export_filename
from sentiment_monitor.services.ingest import IngestionService
from sentiment_monitor.services.scorer import SentimentScorer
from sentiment_monitor.services.seed import seed_sample_data
from sentiment_monitor.sources.reddit import RedditClient
from sentiment_monitor.storage.base import Store, create_store
from sentiment_monitor.utils import (
    InvalidQueryError,
    now_utc,
    parse_day,
    resolve_subreddit,
    resolve_time_range,
)

logger = logging.getLogger(__name__)

SERIES_CACHE_CONTROL = "public, s-maxage=1800, stale-while-revalidate=3600"
DRILL_DOWN_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
SAMPLE_CONTENT_CHARS = 200


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_aggregator(request: Request) -> AggregationService:
    return request.app.state.aggregator


def get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def pick_time_range(settings: Settings, *candidates: Optional[str]) -> str:
    """First non-empty candidate, else DEFAULT_TIME_RANGE; validated."""
    value = next((c for c in candidates if c), settings.DEFAULT_TIME_RANGE).strip().lower()
    resolve_time_range(value)
    return value


def aggregate_out(agg: DailyAggregate) -> DailyAggregateOut:
    return DailyAggregateOut.model_validate(agg)


def drill_down_item(item: ScoredItem) -> DrillDownItem:
    return DrillDownItem.model_validate(item)


def sample_item(item: ScoredItem) -> SampleItem:
    content = item.content
    if len(content) > SAMPLE_CONTENT_CHARS:
        content = content[:SAMPLE_CONTENT_CHARS] + "..."
    return SampleItem(
        id=item.id,
        author=item.author,
        content=content,
        sentiment=item.sentiment.label,
        confidence=item.sentiment.confidence,
        score=item.score,
        permalink=item.permalink,
        timestamp=item.timestamp,
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[Store] = None,
    scorer: Optional[SentimentScorer] = None,
    reddit: Optional[RedditClient] = None,
) -> FastAPI:
    """
    Build the API with explicitly constructed components.

    Components not passed in are created from settings when the app starts
    and live for the lifetime of the process.
    """
    settings = settings or Settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_store = store or create_store(settings)
        aggregator = AggregationService(app_store, settings)
        app.state.settings = settings
        app.state.store = app_store
        app.state.aggregator = aggregator
        app.state.ingestion = IngestionService(
            settings,
            app_store,
            aggregator,
            scorer or SentimentScorer(settings),
            reddit or RedditClient(settings),
        )
        logger.info("Tracking subreddits: %s", ", ".join(settings.tracked_subreddits))
        yield
        if store is None:
            await app_store.close()

    app = FastAPI(
        title="Reddit Sentiment Monitor API",
        version="0.1.0",
        description="Daily sentiment aggregates for tracked subreddits",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidQueryError)
    async def invalid_query_handler(request: Request, exc: InvalidQueryError):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or type(exc).__name__})

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "as_of": now_utc().isoformat(),
            "service": "reddit-sentiment-monitor",
        }

    @app.get("/api/sentiment/aggregate", response_model=AggregateResponse)
    async def get_sentiment_aggregate(
        response: Response,
        subreddit: Optional[str] = Query(ALL_SUBREDDITS, description="Tracked subreddit or 'all'"),
        time_range: Optional[str] = Query(None, alias="timeRange", description="7d, 30d or 90d"),
        range_: Optional[str] = Query(None, alias="range", include_in_schema=False),
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        """Daily aggregates plus headline summary for the dashboard."""
        name = resolve_subreddit(subreddit, settings.tracked_subreddits)
        token = pick_time_range(settings, time_range, range_)
        start, end = resolve_time_range(token)

        series = await aggregator.get_series(name, start, end)
        summary = aggregator.summarize(series)

        response.headers["Cache-Control"] = SERIES_CACHE_CONTROL
        return AggregateResponse(
            data=AggregateData(
                subreddit=name,
                time_range=token,
                aggregates=[aggregate_out(a) for a in series],
                summary=SummaryOut.model_validate(summary),
            ),
            meta=ResponseMeta(last_updated=now_utc().isoformat()),
        )

    @app.get("/api/dashboard/data", response_model=DashboardDataResponse)
    async def get_dashboard_data(
        response: Response,
        subreddit: Optional[str] = Query(ALL_SUBREDDITS),
        range_: Optional[str] = Query(None, alias="range", description="7d, 30d or 90d"),
        time_range: Optional[str] = Query(None, alias="timeRange", include_in_schema=False),
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        """Chart-ready points (sentiment + volume per day)."""
        name = resolve_subreddit(subreddit, settings.tracked_subreddits)
        token = pick_time_range(settings, range_, time_range)
        start, end = resolve_time_range(token)

        series = await aggregator.get_series(name, start, end)
        response.headers["Cache-Control"] = SERIES_CACHE_CONTROL
        return DashboardDataResponse(
            subreddit=name,
            time_range=token,
            data=[
                ChartPoint(date=a.date, sentiment=a.sentiment_score, volume=a.total_count, subreddit=a.subreddit)
                for a in series
            ],
            summary=SummaryOut.model_validate(aggregator.summarize(series)),
        )

    @app.get("/api/drill-down", response_model=DrillDownResponse)
    async def get_drill_down(
        response: Response,
        date: Optional[str] = Query(None, description="ISO day, e.g. 2024-01-31"),
        subreddit: Optional[str] = Query(ALL_SUBREDDITS),
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        """Top posts and comments of one day, ranked by Reddit score."""
        day = parse_day(date)
        name = resolve_subreddit(subreddit, settings.tracked_subreddits)

        posts, comments = await aggregator.get_drill_down(name, day)
        response.headers["Cache-Control"] = DRILL_DOWN_CACHE_CONTROL
        return DrillDownResponse(
            date=day,
            subreddit=name,
            posts=[drill_down_item(i) for i in posts],
            comments=[drill_down_item(i) for i in comments],
        )

    @app.get("/api/sentiment/samples", response_model=SamplesResponse)
    async def get_samples(
        date: Optional[str] = Query(None),
        subreddit: Optional[str] = Query(ALL_SUBREDDITS),
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        day = parse_day(date) if date else now_utc().date()
        name = resolve_subreddit(subreddit, settings.tracked_subreddits)

        items = await aggregator.get_items_for_day(name, day)
        samples = [sample_item(i) for i in items]
        return SamplesResponse(
            data=SamplesData(subreddit=name, date=day, samples=samples, total_count=len(samples)),
            meta=ResponseMeta(last_updated=now_utc().isoformat()),
        )

    @app.get("/api/export/csv")
    async def export_csv(
        subreddit: Optional[str] = Query(ALL_SUBREDDITS),
        time_range: Optional[str] = Query(None, alias="timeRange"),
        range_: Optional[str] = Query(None, alias="range", include_in_schema=False),
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        """CSV download, one row per (date, subreddit) in the window."""
        name = resolve_subreddit(subreddit, settings.tracked_subreddits)
        token = pick_time_range(settings, time_range, range_)
        start, end = resolve_time_range(token)

        series = await aggregator.get_series(name, start, end)
        return Response(
            content=aggregates_to_csv(series),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{export_filename(name, token)}"'},
        )

    @app.post("/api/aggregate/recompute", response_model=RecomputeResponse)
    async def recompute(
        body: RecomputeRequest,
        settings: Settings = Depends(get_settings),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        """Re-aggregate a date window for some or all tracked subreddits."""
        names: List[str] = []
        for raw in body.subreddits or [ALL_SUBREDDITS]:
            name = resolve_subreddit(raw, settings.tracked_subreddits)
            names.extend(settings.tracked_subreddits if name == ALL_SUBREDDITS else [name])
        names = list(dict.fromkeys(names))

        report = await aggregator.recompute_range(body.start_date, body.end_date, names)
        return RecomputeResponse(
            total=report.total,
            completed=report.completed,
            succeeded=report.succeeded,
            failed=[RecomputeFailureOut.model_validate(f) for f in report.failed],
        )

    @app.post("/api/ingest/poll", response_model=IngestResponse)
    async def ingest_poll(ingestion: IngestionService = Depends(get_ingestion)):
        results = await ingestion.poll()
        return IngestResponse(
            timestamp=now_utc().isoformat(),
            results=[IngestSubredditOut.model_validate(r) for r in results],
        )

    @app.post("/api/ingest/backfill", response_model=IngestResponse)
    async def ingest_backfill(
        body: Optional[BackfillRequest] = Body(None),
        ingestion: IngestionService = Depends(get_ingestion),
    ):
        body = body or BackfillRequest()
        results = await ingestion.backfill(days_back=body.days_back)
        return IngestResponse(
            timestamp=now_utc().isoformat(),
            days_back=body.days_back,
            results=[IngestSubredditOut.model_validate(r) for r in results],
        )

    @app.post("/api/init", response_model=MessageResponse)
    async def init_sample_data(
        body: Optional[SeedRequest] = Body(None),
        aggregator: AggregationService = Depends(get_aggregator),
    ):
        body = body or SeedRequest()
        report = await seed_sample_data(aggregator, days=body.days, seed=body.seed)
        return MessageResponse(
            message=f"Sample data initialized: {report.succeeded} daily aggregates over {body.days} days"
        )

    @app.post("/api/data/clear", response_model=MessageResponse)
    async def clear_data(request: Request):
        await request.app.state.store.clear()
        logger.info("All stored data cleared")
        return MessageResponse(message="All data cleared successfully")

    return app


app = create_app()


if __name__ == "__main__":
    # For development
    import uvicorn
    uvicorn.run("sentiment_monitor.main:app", host="0.0.0.0", port=8000, reload=True)
