"""
X/Twitter Feed Client for the Social Signal Bot.

Reads the latest ORIGINAL posts of ONE configured account through the
X API v2 (bearer token auth).

RULES:
- Single account only, no search, no firehose
- Retweets and replies are excluded upstream
- Bounded page size and bounded timeout per request
- Any upstream problem is raised as FeedError; the pipeline decides
  what a failed fetch means for the cycle
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ingestion_tracker import Post


logger = logging.getLogger("twitter_feed")


# =============================================================================
# CONSTANTS
# =============================================================================

TWITTER_API_BASE = "https://api.twitter.com/2"

DEFAULT_PAGE_SIZE = 5
# X API v2 accepts max_results in [5, 100]
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100

FEED_TIMEOUT_SECONDS = 15.0


class FeedError(Exception):
    """The upstream feed could not be read."""


def parse_created_at(value: Any) -> Optional[datetime]:
    """Parse an X API v2 timestamp ("2026-01-17T10:30:00.000Z")."""
    if not isinstance(value, str) or not value:
        return None

    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_posts(payload: Dict[str, Any]) -> List[Post]:
    """
    Convert a /users/:id/tweets response into Posts, preserving order.

    A response without "data" means the account has no matching posts.
    """
    if not isinstance(payload, dict):
        raise FeedError("Unexpected timeline payload")

    items = payload.get("data") or []
    if not isinstance(items, list):
        raise FeedError("Timeline 'data' is not a list")

    posts = []
    for item in items:
        if not isinstance(item, dict):
            continue

        post_id = item.get("id")
        text = item.get("text")
        if not post_id or not isinstance(text, str):
            logger.debug(f"Skipping malformed timeline item: {item}")
            continue

        posts.append(Post(
            id=str(post_id),
            text=text,
            created_at=parse_created_at(item.get("created_at"))
        ))

    return posts


class PostFeed(ABC):
    """Abstract base class for post feeds."""

    @abstractmethod
    async def fetch_latest_posts(self) -> List[Post]:
        """Latest posts, most recent first. Raises FeedError on failure."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


class TwitterFeedClient(PostFeed):
    """
    Timeline reader for the target account.

    The numeric user id is resolved once and cached for the process.
    """

    def __init__(
        self,
        bearer_token: Optional[str],
        account: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout_seconds: float = FEED_TIMEOUT_SECONDS,
        api_base: str = TWITTER_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.bearer_token = bearer_token or ""
        self.account = account.lstrip("@")
        self.page_size = max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, page_size))
        self.timeout_seconds = timeout_seconds
        self.api_base = api_base.rstrip("/")

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._user_id: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.bearer_token and self.account)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Authorization": f"Bearer {self.bearer_token}",
                "User-Agent": "social-signal-bot"
            }
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                headers=headers,
                timeout=self.timeout_seconds,
                transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = await self._get_client()

        try:
            response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise FeedError(f"Request to {path} failed: {e}") from e

        if response.status_code == 429:
            raise FeedError("Rate limited by X API (HTTP 429)")
        if response.status_code != 200:
            raise FeedError(f"X API HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise FeedError(f"Invalid JSON from {path}: {e}") from e

    async def resolve_user_id(self) -> str:
        """Resolve and cache the account's numeric user id."""
        if self._user_id:
            return self._user_id

        payload = await self._get_json(f"/users/by/username/{self.account}")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            raise FeedError(f"Account @{self.account} not found")

        self._user_id = str(data["id"])
        logger.info(f"Resolved @{self.account} -> user id {self._user_id}")
        return self._user_id

    async def fetch_latest_posts(self) -> List[Post]:
        """
        Latest original posts of the account, most recent first.

        Raises FeedError on any upstream failure.
        """
        if not self.is_configured:
            raise FeedError("TWITTER_BEARER_TOKEN or target account not configured")

        user_id = await self.resolve_user_id()
        payload = await self._get_json(
            f"/users/{user_id}/tweets",
            params={
                "max_results": self.page_size,
                "exclude": "retweets,replies",
                "tweet.fields": "created_at"
            }
        )

        posts = parse_posts(payload)
        logger.debug(f"Fetched {len(posts)} posts from @{self.account}")
        return posts
