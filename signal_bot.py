"""
Social Signal Bot - process entry point.

Watches ONE X/Twitter account, scores each new post for trading
sentiment and pushes BUY / SELL / NEUTRAL signals to Telegram.

Runs in a single asyncio event loop:
- PollScheduler drives the signal pipeline at a fixed interval
- uvicorn serves the liveness endpoint
- SIGINT / SIGTERM stop both cleanly

Missing credentials are logged at startup and are NOT fatal.
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
from dataclasses import dataclass

import uvicorn

from bot_config import BotConfig, load_config
from health_api import BotStatus, create_app
from ingestion_tracker import IngestionTracker
from sentiment_classifier import SentimentClassifier
from signal_pipeline import PollScheduler, SignalPipeline
from telegram_dispatcher import (
    SignalMessageFormatter,
    TelegramDispatcher,
    TelegramSender,
    resolve_timezone
)
from twitter_feed import TwitterFeedClient


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ"
)
logger = logging.getLogger("signal_bot")


# =============================================================================
# WIRING
# =============================================================================

@dataclass
class SignalBot:
    """All long-lived components, constructed once at startup."""
    config: BotConfig
    feed: TwitterFeedClient
    tracker: IngestionTracker
    sentiment_classifier: SentimentClassifier
    dispatcher: TelegramDispatcher
    pipeline: SignalPipeline
    scheduler: PollScheduler
    status: BotStatus


def build_bot(config: BotConfig) -> SignalBot:
    """Construct and connect the bot components from configuration."""
    feed = TwitterFeedClient(
        bearer_token=config.twitter_bearer_token,
        account=config.target_account,
        page_size=config.feed_page_size
    )
    # A full page must fit in the tracker or its older posts come back as new
    max_tracked_posts = config.max_tracked_posts
    if max_tracked_posts < feed.page_size:
        logger.warning(
            f"MAX_TRACKED_POSTS={max_tracked_posts} is below the feed page size, "
            f"using {feed.page_size}"
        )
        max_tracked_posts = feed.page_size
    tracker = IngestionTracker(max_tracked_posts=max_tracked_posts)
    sentiment_classifier = SentimentClassifier(
        api_key=config.huggingface_api_key,
        model_id=config.sentiment_model
    )
    dispatcher = TelegramDispatcher(
        sender=TelegramSender(config.telegram_bot_token, config.telegram_chat_id),
        formatter=SignalMessageFormatter(resolve_timezone(config.timezone))
    )
    pipeline = SignalPipeline(
        feed=feed,
        tracker=tracker,
        sentiment_classifier=sentiment_classifier,
        dispatcher=dispatcher,
        confidence_threshold=config.confidence_threshold
    )
    scheduler = PollScheduler(pipeline, interval_ms=config.poll_interval_ms)
    status = BotStatus(
        last_check=lambda: pipeline.metrics.last_check,
        signals_sent=lambda: dispatcher.signals_sent
    )

    return SignalBot(
        config=config,
        feed=feed,
        tracker=tracker,
        sentiment_classifier=sentiment_classifier,
        dispatcher=dispatcher,
        pipeline=pipeline,
        scheduler=scheduler,
        status=status
    )


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the bot."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


# =============================================================================
# RUN
# =============================================================================

async def run(config: BotConfig) -> None:
    bot = build_bot(config)

    server = _EmbeddedServer(uvicorn.Config(
        create_app(bot.status),
        host="0.0.0.0",
        port=config.port,
        log_level="warning"
    ))

    def request_shutdown() -> None:
        logger.info("Shutdown requested...")
        bot.scheduler.stop()
        server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            signal.signal(sig, lambda signum, frame: request_shutdown())

    logger.info(
        f"Watching @{config.target_account} every {config.poll_interval_ms / 1000:.0f}s "
        f"(threshold {config.confidence_threshold}%, port {config.port})"
    )

    if config.send_startup_status:
        await bot.dispatcher.send_status(
            f"Signal bot started, watching @{config.target_account} "
            f"(threshold {config.confidence_threshold}%)"
        )

    server_task = asyncio.create_task(server.serve())
    scheduler_task = asyncio.create_task(bot.scheduler.run_forever())

    try:
        await asyncio.wait({server_task, scheduler_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        request_shutdown()
        results = await asyncio.gather(server_task, scheduler_task, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Task ended with error: {result}")
        await bot.feed.close()

    logger.info(f"Final metrics: {bot.pipeline.metrics.to_dict()}")
    logger.info(f"Dispatch stats: {bot.dispatcher.get_stats()}")


def main() -> None:
    """Main entry point."""
    logger.info("Starting social signal bot...")

    config = load_config()
    logger.info("Checking environment variables...")
    config.log_credential_status()

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        logger.error(f"Bot failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
