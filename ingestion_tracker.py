"""
Ingestion Tracker for the Social Signal Bot.

Deduplicates posts already processed by the pipeline.

RULES:
- In-memory only, state lives for the process lifetime
- A post id is reported new at most once within the retention window
- Capacity is bounded; oldest tracked posts are evicted first (FIFO)
- Each batch is tracked oldest first (feed order is most recent first)
- Eviction runs AFTER insertion, never in the middle of a filter pass
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Iterable, List, Optional, Set


logger = logging.getLogger("ingestion_tracker")


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_MAX_TRACKED_POSTS = 100


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Post:
    """A post fetched from the upstream feed."""
    id: str
    text: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }


@dataclass(frozen=True)
class TrackedPost:
    """Post retained by the tracker for deduplication."""
    id: str
    text: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_post(cls, post: Post) -> "TrackedPost":
        return cls(id=post.id, text=post.text, created_at=post.created_at)


# =============================================================================
# TRACKER
# =============================================================================

class IngestionTracker:
    """
    Bounded FIFO set of processed post ids.

    Mutations are serialized with a lock: insertion and eviction
    do not commute.
    """

    def __init__(self, max_tracked_posts: int = DEFAULT_MAX_TRACKED_POSTS):
        if max_tracked_posts < 1:
            raise ValueError("max_tracked_posts must be >= 1")

        self.max_tracked_posts = max_tracked_posts
        self._posts: Deque[TrackedPost] = deque()
        self._ids: Set[str] = set()
        self._evicted_count = 0
        self._lock = threading.Lock()

    def filter_new(self, posts: Iterable[Post]) -> List[Post]:
        """
        Return posts not seen before, in input order, and track them.

        Input is in feed order (most recent first). The batch is tracked
        oldest first, so an overflowing batch evicts its oldest posts and
        keeps the newest. A duplicate id inside the same batch is returned once.
        """
        new_posts = []

        with self._lock:
            for post in posts:
                if post.id in self._ids:
                    continue

                self._ids.add(post.id)
                new_posts.append(post)

            for post in reversed(new_posts):
                self._posts.append(TrackedPost.from_post(post))

            evicted = self._evict_overflow()

        if evicted:
            logger.debug(f"Evicted {evicted} tracked posts (capacity {self.max_tracked_posts})")

        return new_posts

    def _evict_overflow(self) -> int:
        evicted = 0
        while len(self._posts) > self.max_tracked_posts:
            oldest = self._posts.popleft()
            self._ids.discard(oldest.id)
            evicted += 1
        self._evicted_count += evicted
        return evicted

    def __contains__(self, post_id: object) -> bool:
        with self._lock:
            return post_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._posts)

    def tracked_posts(self) -> List[TrackedPost]:
        """Tracked posts, oldest first."""
        with self._lock:
            return list(self._posts)

    @property
    def evicted_count(self) -> int:
        return self._evicted_count

    def clear(self) -> None:
        with self._lock:
            self._posts.clear()
            self._ids.clear()
            self._evicted_count = 0
