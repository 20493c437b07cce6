"""
Signal Pipeline Orchestrator for the Social Signal Bot.

Drives one poll cycle end to end:

1. Fetch latest posts from the feed (bounded page)
2. Drop posts already seen (IngestionTracker)
3. For each new post, in feed order:
   normalize -> sentiment -> keywords -> signal
4. Dispatch signals whose confidence reaches the threshold

FAILURE ISOLATION:
- A feed failure ends the cycle early with zero posts processed
- A post failure never affects the other posts of the cycle
- Nothing escapes a cycle; the process NEVER crashes on upstream errors
- Cycles never overlap; a tick during a running cycle is skipped
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

from ingestion_tracker import IngestionTracker, Post
from sentiment_classifier import SentimentClassifier
from signal_classifier import analyze_post
from telegram_dispatcher import TelegramDispatcher
from twitter_feed import FeedError, PostFeed


logger = logging.getLogger("signal_pipeline")


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_CONFIDENCE_THRESHOLD = 70
DEFAULT_POLL_INTERVAL_MS = 60000


# =============================================================================
# ENUMS
# =============================================================================

class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


# =============================================================================
# METRICS
# =============================================================================

@dataclass
class CycleResult:
    """Outcome of a single poll cycle."""
    started_at: datetime
    fetched: int = 0
    new_posts: int = 0
    dispatched: int = 0
    delivered: int = 0
    below_threshold: int = 0
    errors: int = 0
    feed_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "fetched": self.fetched,
            "new_posts": self.new_posts,
            "dispatched": self.dispatched,
            "delivered": self.delivered,
            "below_threshold": self.below_threshold,
            "errors": self.errors,
            "feed_error": self.feed_error
        }


@dataclass
class PipelineMetrics:
    """Counters across the process lifetime (observability only)."""
    cycles_run: int = 0
    cycles_skipped: int = 0
    feed_errors: int = 0
    posts_fetched: int = 0
    posts_new: int = 0
    signals_dispatched: int = 0
    signals_below_threshold: int = 0
    post_errors: int = 0
    last_check: Optional[datetime] = None

    def record_cycle(self, result: CycleResult) -> None:
        self.cycles_run += 1
        self.last_check = result.started_at
        self.posts_fetched += result.fetched
        self.posts_new += result.new_posts
        self.signals_dispatched += result.dispatched
        self.signals_below_threshold += result.below_threshold
        self.post_errors += result.errors
        if result.feed_error is not None:
            self.feed_errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycles_run": self.cycles_run,
            "cycles_skipped": self.cycles_skipped,
            "feed_errors": self.feed_errors,
            "posts_fetched": self.posts_fetched,
            "posts_new": self.posts_new,
            "signals_dispatched": self.signals_dispatched,
            "signals_below_threshold": self.signals_below_threshold,
            "post_errors": self.post_errors,
            "last_check": self.last_check.isoformat() if self.last_check else None
        }


# =============================================================================
# PIPELINE
# =============================================================================

class SignalPipeline:
    """
    Poll cycle orchestrator.

    State machine: IDLE -> RUNNING on tick, RUNNING -> IDLE when the
    cycle completes (successfully or with a handled failure).
    """

    def __init__(
        self,
        feed: PostFeed,
        tracker: IngestionTracker,
        sentiment_classifier: SentimentClassifier,
        dispatcher: TelegramDispatcher,
        confidence_threshold: int = DEFAULT_CONFIDENCE_THRESHOLD
    ):
        self.feed = feed
        self.tracker = tracker
        self.sentiment_classifier = sentiment_classifier
        self.dispatcher = dispatcher
        self.confidence_threshold = confidence_threshold

        self.state = PipelineState.IDLE
        self.metrics = PipelineMetrics()

    async def tick(self) -> Optional[CycleResult]:
        """
        Timer entry point. Skips (returns None) if a cycle is running.
        """
        if self.state == PipelineState.RUNNING:
            self.metrics.cycles_skipped += 1
            logger.warning("Previous cycle still running, skipping this tick")
            return None

        self.state = PipelineState.RUNNING
        try:
            return await self.run_cycle()
        except Exception as e:
            logger.error(f"Cycle error: {e}")
            return None
        finally:
            self.state = PipelineState.IDLE

    async def run_cycle(self) -> CycleResult:
        """Run one fetch -> classify -> dispatch cycle."""
        result = CycleResult(started_at=datetime.now(timezone.utc))

        try:
            posts = await self.feed.fetch_latest_posts()
        except FeedError as e:
            result.feed_error = str(e)
            logger.warning(f"Feed fetch failed: {e}")
        except Exception as e:
            result.feed_error = str(e)
            logger.error(f"Feed fetch exception: {e}")
        else:
            result.fetched = len(posts)
            new_posts = self.tracker.filter_new(posts)
            result.new_posts = len(new_posts)

            if new_posts:
                logger.info(f"{len(new_posts)} new post(s) out of {len(posts)} fetched")
            else:
                logger.debug("No new posts")

            for post in new_posts:
                try:
                    await self._process_post(post, result)
                except Exception as e:
                    result.errors += 1
                    logger.error(f"Post {post.id} processing error: {e}")

        self.metrics.record_cycle(result)
        return result

    async def _process_post(self, post: Post, result: CycleResult) -> None:
        signal = await analyze_post(post.text, self.sentiment_classifier)

        logger.info(
            f"Post {post.id}: {signal.type.value} {signal.confidence}% "
            f"({signal.reasoning}) | {post.text[:60]}"
        )

        if signal.confidence < self.confidence_threshold:
            result.below_threshold += 1
            logger.debug(
                f"Post {post.id} below threshold "
                f"({signal.confidence} < {self.confidence_threshold}), dropped"
            )
            return

        result.dispatched += 1
        if await self.dispatcher.send_signal(signal, post.text):
            result.delivered += 1


# =============================================================================
# SCHEDULER
# =============================================================================

class PollScheduler:
    """
    Fires pipeline ticks at a fixed interval.

    Each tick runs as its own task so the timer keeps its cadence;
    overlap is resolved by SignalPipeline.tick() skipping.
    """

    def __init__(self, pipeline: SignalPipeline, interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")

        self.pipeline = pipeline
        self.interval_seconds = interval_ms / 1000.0

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_forever(self) -> None:
        """Tick immediately, then every interval, until stop()."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(f"Scheduler started (interval={self.interval_seconds:.1f}s)")

        try:
            while self._running:
                task = asyncio.create_task(self.pipeline.tick())
                self._ticks.add(task)
                task.add_done_callback(self._ticks.discard)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            if self._ticks:
                # Cycles are bounded by per-call timeouts
                await asyncio.gather(*self._ticks, return_exceptions=True)
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the timer; an in-flight cycle is allowed to finish."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
