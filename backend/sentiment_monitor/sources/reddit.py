"""
File: sentiment_monitor/sources/reddit.py
Reddit listing fetcher: OAuth (client credentials) when configured, the public
JSON endpoints otherwise.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from sentiment_monitor.config import Settings
from sentiment_monitor.models import JsonDict, RedditComment, RedditPost
from sentiment_monitor.utils import normalize_text

REDDIT_AUTH_URL = "https://www.reddit.com/api/v1/access_token"
OAUTH_BASE_URL = "https://oauth.reddit.com"
PUBLIC_BASE_URL = "https://www.reddit.com"


def _permalink(path: str) -> str:
    return f"https://reddit.com{path}" if path else ""


def parse_post(d: JsonDict) -> RedditPost:
    author = d.get("author") or "[deleted]"
    return RedditPost(
        id=str(d.get("id", "")),
        subreddit=d.get("subreddit", ""),
        timestamp=int(d.get("created_utc") or 0),
        author=author,
        title=normalize_text(d.get("title", "")),
        body=normalize_text(d.get("selftext", "")),
        score=int(d.get("score") or 0),
        num_comments=int(d.get("num_comments") or 0),
        permalink=_permalink(d.get("permalink", "")),
        flair=d.get("link_flair_text"),
        is_deleted=author == "[deleted]",
        is_removed=d.get("removed_by_category") is not None or d.get("selftext") == "[removed]",
    )


def parse_comment(d: JsonDict) -> RedditComment:
    author = d.get("author") or "[deleted]"
    body = d.get("body") or ""
    return RedditComment(
        id=str(d.get("id", "")),
        subreddit=d.get("subreddit", ""),
        timestamp=int(d.get("created_utc") or 0),
        author=author,
        body=normalize_text(body),
        score=int(d.get("score") or 0),
        parent_id=d.get("parent_id", ""),
        permalink=_permalink(d.get("permalink", "")),
        is_deleted=author == "[deleted]" or body in ("[deleted]", "[removed]"),
    )


class RedditClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport
        # simple in-memory cache for the bearer token
        self._token: Dict[str, Any] = {"value": None, "expires_at": 0.0}

    @property
    def has_credentials(self) -> bool:
        return bool(self.settings.REDDIT_CLIENT_ID and self.settings.REDDIT_CLIENT_SECRET)

    def _client(self, **kwargs) -> httpx.AsyncClient:
        headers = {"User-Agent": self.settings.REDDIT_USER_AGENT}
        headers.update(kwargs.pop("headers", {}))
        return httpx.AsyncClient(timeout=20.0, headers=headers, transport=self._transport, **kwargs)

    async def token(self) -> str:
        """Get (and cache) an app-only bearer token."""
        now = time.time()
        if self._token["value"] and self._token["expires_at"] - now > 60:
            return self._token["value"]

        auth = (self.settings.REDDIT_CLIENT_ID, self.settings.REDDIT_CLIENT_SECRET)
        async with self._client() as client:
            r = await client.post(REDDIT_AUTH_URL, data={"grant_type": "client_credentials"}, auth=auth)
            r.raise_for_status()
            tok = r.json()

        self._token["value"] = tok["access_token"]
        self._token["expires_at"] = now + float(tok.get("expires_in", 3600))
        return self._token["value"]

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.has_credentials:
            token = await self.token()
            url = f"{OAUTH_BASE_URL}{path}"
            headers = {"Authorization": f"Bearer {token}"}
        else:
            url = f"{PUBLIC_BASE_URL}{path}.json"
            headers = {}

        async with self._client(headers=headers) as client:
            r = await client.get(url, params=params)
            r.raise_for_status()
            return r.json()

    async def fetch_posts(
        self, subreddit: str, limit: int = 100, after: Optional[str] = None
    ) -> Tuple[List[RedditPost], Optional[str]]:
        """
        Fetch one page of the subreddit's ``new`` listing.

        Returns:
            (posts, after) where after is the cursor for the next page or None
        """
        params: Dict[str, Any] = {"limit": min(max(1, limit), 100)}
        if after:
            params["after"] = after
        data = await self._get(f"/r/{subreddit}/new", params)

        listing = data.get("data", {}) if isinstance(data, dict) else {}
        posts = [
            parse_post(child.get("data", {}))
            for child in listing.get("children", [])
            if child.get("kind", "t3") == "t3"
        ]
        return posts, listing.get("after")

    async def fetch_posts_since(
        self, subreddit: str, since: datetime, page_limit: int = 100, max_pages: int = 50
    ) -> List[RedditPost]:
        """Page through ``new`` until posts are older than ``since``."""
        cutoff = since.timestamp()
        collected: List[RedditPost] = []
        after: Optional[str] = None

        for _ in range(max_pages):
            posts, after = await self.fetch_posts(subreddit, limit=page_limit, after=after)
            fresh = [p for p in posts if p.timestamp >= cutoff]
            collected.extend(fresh)
            if not after or len(fresh) < len(posts):
                break

        return collected

    async def fetch_comments(self, subreddit: str, post_id: str) -> List[RedditComment]:
        """Top-level comments of a post (the second listing of the response)."""
        data = await self._get(f"/r/{subreddit}/comments/{post_id}")
        if not isinstance(data, list) or len(data) < 2:
            return []

        comments = []
        for child in data[1].get("data", {}).get("children", []):
            if child.get("kind") == "t1":
                comment = parse_comment(child.get("data", {}))
                comments.append(comment)
        return comments
