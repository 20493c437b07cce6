"""
Telegram Dispatcher for the Social Signal Bot.

Formats classified signals into Telegram messages and delivers them
to the configured chat through the Bot API.

DELIVERY RULES:
- Best effort: a failed send is logged, NEVER raised
- A failed notification MUST NOT abort the poll cycle
- NO inline retries; the message is simply missed
"""

import asyncio
import html
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Deque, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import aiohttp

from signal_classifier import Signal, SignalType


logger = logging.getLogger("telegram_dispatcher")


# =============================================================================
# CONSTANTS
# =============================================================================

TELEGRAM_API_BASE = "https://api.telegram.org/bot"
SEND_TIMEOUT_SECONDS = 10.0

POST_PREVIEW_LENGTH = 100
SIGNAL_HISTORY_SIZE = 100

SIGNAL_EMOJI = {
    SignalType.BUY: "🟢",
    SignalType.SELL: "🔴",
    SignalType.NEUTRAL: "🟡",
}


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Timezone for message timestamps; unknown names fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return timezone.utc


# =============================================================================
# MESSAGE FORMATTER
# =============================================================================

class SignalMessageFormatter:
    """
    Builds HTML-mode Telegram messages.

    All user-supplied content (post text, reasoning) is escaped.
    """

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc

    def format_timestamp(self, dt: Optional[datetime] = None) -> str:
        if dt is None:
            dt = datetime.now(timezone.utc)
        return dt.astimezone(self.tz).strftime("%d/%m/%Y %H:%M:%S %Z")

    def format_signal(
        self,
        signal: Signal,
        source_text: str,
        sent_at: Optional[datetime] = None
    ) -> str:
        emoji = SIGNAL_EMOJI.get(signal.type, "⚪")
        preview = (source_text or "")[:POST_PREVIEW_LENGTH]

        lines = [
            f"{emoji} <b>SIGNAL {signal.type.value}</b> ({signal.confidence}% confidence)"
        ]

        if signal.symbols:
            lines.append(f"💰 Symbols: {html.escape(', '.join(signal.symbols))}")

        lines.extend([
            "",
            f"📝 Post: \"{html.escape(preview)}\"",
            f"🧠 Analysis: {html.escape(signal.reasoning)}",
            f"⏰ {self.format_timestamp(sent_at)}"
        ])

        return "\n".join(lines)

    def format_status(self, message: str, sent_at: Optional[datetime] = None) -> str:
        return f"ℹ️ {html.escape(message)}\n⏰ {self.format_timestamp(sent_at)}"


# =============================================================================
# TELEGRAM SENDER
# =============================================================================

class TelegramSender:
    """
    Sends messages to a Telegram chat via the Bot API.

    Uses aiohttp with a bounded timeout.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        timeout_seconds: float = SEND_TIMEOUT_SECONDS
    ):
        self.bot_token = bot_token or ""
        self.chat_id = chat_id or ""
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        """Check if Telegram credentials are configured."""
        return bool(self.bot_token and self.chat_id)

    async def send_message(self, text: str) -> bool:
        """
        Send one message. Returns True on success.

        Never raises.
        """
        if not self.is_configured:
            logger.warning("Telegram not configured, skipping message")
            return False

        try:
            return await self._send_request(text)
        except asyncio.TimeoutError:
            logger.error(f"Telegram send timed out after {self.timeout_seconds:.0f}s")
        except aiohttp.ClientError as e:
            logger.error(f"Telegram API client error: {e}")
        except ValueError as e:
            logger.error(f"Telegram API returned invalid JSON: {e}")
        return False

    async def _send_request(self, text: str) -> bool:
        """POST sendMessage and report whether Telegram accepted it."""
        url = f"{TELEGRAM_API_BASE}{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload) as response:
                result = await response.json(content_type=None)

                if not isinstance(result, dict):
                    logger.error(f"Telegram API unexpected response (HTTP {response.status})")
                    return False

                if response.status == 200 and result.get("ok"):
                    return True

                logger.error(
                    f"Telegram API error (HTTP {response.status}): "
                    f"{result.get('description', 'Unknown error')}"
                )
                return False


# =============================================================================
# DISPATCHER
# =============================================================================

@dataclass
class DispatchRecord:
    """One dispatched signal, kept in the in-memory history."""
    signal: Signal
    post_preview: str
    delivered: bool
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.to_dict(),
            "post_preview": self.post_preview,
            "delivered": self.delivered,
            "timestamp": self.timestamp.isoformat()
        }


class TelegramDispatcher:
    """
    Delivers signal and status notifications.

    Owns its statistics and a bounded signal history; nothing is global.
    """

    def __init__(
        self,
        sender: TelegramSender,
        formatter: Optional[SignalMessageFormatter] = None,
        history_size: int = SIGNAL_HISTORY_SIZE
    ):
        self.sender = sender
        self.formatter = formatter or SignalMessageFormatter()

        self._history: Deque[DispatchRecord] = deque(maxlen=history_size)
        self._signals_sent = 0
        self._status_sent = 0
        self._failed = 0
        self._lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        return self.sender.is_configured

    async def send_signal(self, signal: Signal, source_text: str) -> bool:
        """Format and deliver a signal. Never raises."""
        now = datetime.now(timezone.utc)

        try:
            message = self.formatter.format_signal(signal, source_text, now)
            delivered = await self.sender.send_message(message)
        except Exception as e:
            logger.error(f"Signal dispatch error: {e}")
            delivered = False

        with self._lock:
            self._history.append(DispatchRecord(
                signal=signal,
                post_preview=(source_text or "")[:POST_PREVIEW_LENGTH],
                delivered=delivered,
                timestamp=now
            ))
            if delivered:
                self._signals_sent += 1
            else:
                self._failed += 1

        if delivered:
            logger.info(f"Signal sent: {signal.type.value} {signal.confidence}% {list(signal.symbols)}")
        else:
            logger.error(f"Signal not delivered: {signal.type.value} {signal.confidence}%")

        return delivered

    async def send_status(self, message: str) -> bool:
        """Deliver a status / heartbeat notice. Never raises."""
        try:
            delivered = await self.sender.send_message(self.formatter.format_status(message))
        except Exception as e:
            logger.error(f"Status dispatch error: {e}")
            delivered = False

        with self._lock:
            if delivered:
                self._status_sent += 1
            else:
                self._failed += 1

        return delivered

    @property
    def signals_sent(self) -> int:
        with self._lock:
            return self._signals_sent

    def get_signal_history(self) -> List[Dict[str, Any]]:
        """Dispatched signals, oldest first."""
        with self._lock:
            return [record.to_dict() for record in self._history]

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "signals_sent": self._signals_sent,
                "status_sent": self._status_sent,
                "failed": self._failed
            }
