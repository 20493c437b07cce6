"""
Configuration for the Social Signal Bot.

Loads configuration from .env file and the process environment.
The resulting BotConfig is read-only for the process lifetime.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv


logger = logging.getLogger("bot_config")


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_TARGET_ACCOUNT = "elonmusk"
DEFAULT_POLL_INTERVAL_MS = 60000
DEFAULT_CONFIDENCE_THRESHOLD = 70
DEFAULT_MAX_TRACKED_POSTS = 100
DEFAULT_SENTIMENT_MODEL = "cardiffnlp/twitter-roberta-base-sentiment-latest"
DEFAULT_FEED_PAGE_SIZE = 5
DEFAULT_TIMEZONE = "UTC"
DEFAULT_PORT = 3000

# Environment key for each upstream credential
CREDENTIAL_KEYS = (
    "TWITTER_BEARER_TOKEN",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "HUGGINGFACE_API_KEY",
)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class BotConfig:
    """Runtime configuration, populated once at startup."""
    target_account: str = DEFAULT_TARGET_ACCOUNT
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    confidence_threshold: int = DEFAULT_CONFIDENCE_THRESHOLD
    max_tracked_posts: int = DEFAULT_MAX_TRACKED_POSTS

    twitter_bearer_token: str = ""
    huggingface_api_key: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    sentiment_model: str = DEFAULT_SENTIMENT_MODEL
    feed_page_size: int = DEFAULT_FEED_PAGE_SIZE
    timezone: str = DEFAULT_TIMEZONE
    port: int = DEFAULT_PORT
    send_startup_status: bool = True

    @property
    def credentials(self) -> Dict[str, str]:
        return {
            "TWITTER_BEARER_TOKEN": self.twitter_bearer_token,
            "TELEGRAM_BOT_TOKEN": self.telegram_bot_token,
            "TELEGRAM_CHAT_ID": self.telegram_chat_id,
            "HUGGINGFACE_API_KEY": self.huggingface_api_key,
        }

    def missing_credentials(self) -> List[str]:
        """Credential keys with no value."""
        return [key for key, value in self.credentials.items() if not value]

    def log_credential_status(self) -> None:
        """Log OK / MISSING per credential. Missing ones are not fatal."""
        for key, value in self.credentials.items():
            if value:
                logger.info(f"{key}: OK")
            else:
                logger.warning(f"{key}: MISSING")


# =============================================================================
# ENVIRONMENT LOADING
# =============================================================================

def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 1) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Invalid {key}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(f"{key}={value} below minimum {minimum}, using default {default}")
        return default
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def config_from_env(env: Mapping[str, str]) -> BotConfig:
    """Build a BotConfig from an environment mapping."""
    return BotConfig(
        target_account=(env.get("TARGET_ACCOUNT") or DEFAULT_TARGET_ACCOUNT).strip().lstrip("@"),
        poll_interval_ms=_get_int(env, "POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
        confidence_threshold=_get_int(env, "CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD, minimum=0),
        max_tracked_posts=_get_int(env, "MAX_TRACKED_POSTS", DEFAULT_MAX_TRACKED_POSTS),
        twitter_bearer_token=env.get("TWITTER_BEARER_TOKEN", ""),
        huggingface_api_key=env.get("HUGGINGFACE_API_KEY", ""),
        telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=env.get("TELEGRAM_CHAT_ID", ""),
        sentiment_model=env.get("SENTIMENT_MODEL") or DEFAULT_SENTIMENT_MODEL,
        feed_page_size=_get_int(env, "FEED_PAGE_SIZE", DEFAULT_FEED_PAGE_SIZE),
        timezone=env.get("NOTIFY_TIMEZONE") or DEFAULT_TIMEZONE,
        port=_get_int(env, "PORT", DEFAULT_PORT),
        send_startup_status=_get_bool(env, "SEND_STARTUP_STATUS", True)
    )


def load_config(env_file: Optional[str] = ".env") -> BotConfig:
    """
    Load configuration.

    First loads the .env file (never overriding the real environment),
    then reads from os.environ.
    """
    if env_file:
        load_dotenv(env_file, override=False)
    return config_from_env(os.environ)
