"""
Remote Sentiment Classifier for the Social Signal Bot.

Sends cleaned post text to a Hugging Face Inference API text-classification
model and maps its three-class label to a numeric polarity.

AVAILABILITY OVER ACCURACY:
- classify() NEVER raises
- Any failure (timeout, non-2xx, malformed payload) returns the tagged
  DEFAULT result: NEUTRAL, polarity 0.0, confidence 0.5
- NO retries inside a call; the next poll cycle is the retry
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp


logger = logging.getLogger("sentiment_classifier")


# =============================================================================
# CONSTANTS
# =============================================================================

HF_API_BASE = "https://api-inference.huggingface.co/models"
DEFAULT_SENTIMENT_MODEL = "cardiffnlp/twitter-roberta-base-sentiment-latest"

# Bounded timeout for the inference call
INFERENCE_TIMEOUT_SECONDS = 10.0


# =============================================================================
# ENUMS
# =============================================================================

class SentimentLabel(str, Enum):
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    POSITIVE = "POSITIVE"


class SentimentSource(str, Enum):
    """Where a SentimentResult came from."""
    MODEL = "model"
    DEFAULT = "default"


# Model label -> sentiment label. Older checkpoints answer LABEL_0/1/2,
# the "-latest" checkpoints answer negative/neutral/positive.
LABEL_MAP: Dict[str, SentimentLabel] = {
    "label_0": SentimentLabel.NEGATIVE,
    "label_1": SentimentLabel.NEUTRAL,
    "label_2": SentimentLabel.POSITIVE,
    "negative": SentimentLabel.NEGATIVE,
    "neutral": SentimentLabel.NEUTRAL,
    "positive": SentimentLabel.POSITIVE,
}

# Fixed polarity per label (FIXED - DO NOT MODIFY)
POLARITY_MAP: Dict[SentimentLabel, float] = {
    SentimentLabel.NEGATIVE: -0.8,
    SentimentLabel.NEUTRAL: 0.0,
    SentimentLabel.POSITIVE: 0.8,
}


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class SentimentResult:
    """Sentiment of one text, tagged with its origin."""
    label: SentimentLabel
    polarity: float
    model_confidence: float
    source: SentimentSource = SentimentSource.MODEL
    raw_label: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.source == SentimentSource.DEFAULT

    def to_dict(self) -> dict:
        return {
            "label": self.label.value,
            "polarity": self.polarity,
            "model_confidence": self.model_confidence,
            "source": self.source.value,
            "raw_label": self.raw_label
        }


DEFAULT_SENTIMENT = SentimentResult(
    label=SentimentLabel.NEUTRAL,
    polarity=0.0,
    model_confidence=0.5,
    source=SentimentSource.DEFAULT
)


class InferenceError(Exception):
    """Remote inference answered with an error or an unusable payload."""


def parse_inference_payload(payload: Any) -> SentimentResult:
    """
    Parse a text-classification response.

    Accepted shapes:
        [{"label": "positive", "score": 0.93}]
        [[{"label": "positive", "score": 0.93}, {"label": "neutral", ...}]]

    In the nested form the highest-scoring entry wins.
    Raises InferenceError on anything else.
    """
    entry = payload

    if isinstance(entry, list):
        if not entry:
            raise InferenceError("Empty inference payload")
        entry = entry[0]

    if isinstance(entry, list):
        candidates = [item for item in entry if isinstance(item, dict)]
        if not candidates:
            raise InferenceError("No classification entries in payload")
        try:
            entry = max(candidates, key=lambda item: float(item.get("score", 0.0)))
        except (TypeError, ValueError) as e:
            raise InferenceError(f"Invalid score in payload: {e}") from e

    if not isinstance(entry, dict) or "label" not in entry:
        raise InferenceError(f"Unexpected payload shape: {str(payload)[:200]}")

    raw_label = str(entry["label"])
    label = LABEL_MAP.get(raw_label.lower(), SentimentLabel.NEUTRAL)

    try:
        confidence = float(entry.get("score", DEFAULT_SENTIMENT.model_confidence))
    except (TypeError, ValueError) as e:
        raise InferenceError(f"Invalid score in payload: {e}") from e

    return SentimentResult(
        label=label,
        polarity=POLARITY_MAP[label],
        model_confidence=max(0.0, min(1.0, confidence)),
        source=SentimentSource.MODEL,
        raw_label=raw_label
    )


# =============================================================================
# CLASSIFIER
# =============================================================================

class SentimentClassifier:
    """
    Hugging Face Inference API sentiment classifier.

    Credentials and model id are injected; the classifier never reads
    the environment itself.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = DEFAULT_SENTIMENT_MODEL,
        timeout_seconds: float = INFERENCE_TIMEOUT_SECONDS,
        api_base: str = HF_API_BASE
    ):
        self.api_key = api_key or ""
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds
        self.api_base = api_base.rstrip("/")

        self._model_results = 0
        self._default_results = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/{self.model_id}"

    async def classify(self, text: str) -> SentimentResult:
        """
        Classify cleaned text. Returns DEFAULT_SENTIMENT on any failure.
        """
        if not text or not text.strip():
            self._default_results += 1
            logger.debug("Empty text after normalization, using neutral default")
            return DEFAULT_SENTIMENT

        if not self.is_configured:
            return self._fallback("HUGGINGFACE_API_KEY not configured")

        try:
            payload = await self._request(text)
            result = parse_inference_payload(payload)
        except asyncio.TimeoutError:
            return self._fallback(f"timeout after {self.timeout_seconds:.0f}s")
        except aiohttp.ClientError as e:
            return self._fallback(f"client error: {e}")
        except InferenceError as e:
            return self._fallback(str(e))
        except ValueError as e:
            return self._fallback(f"invalid JSON: {e}")

        self._model_results += 1
        logger.debug(
            f"Sentiment {result.label.value} ({result.raw_label}) "
            f"polarity={result.polarity:+.2f} confidence={result.model_confidence:.2f}"
        )
        return result

    async def _request(self, text: str) -> Any:
        """POST the text to the inference endpoint and return decoded JSON."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                self.endpoint, json={"inputs": text}, headers=headers
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise InferenceError(f"HTTP {response.status}: {body[:200]}")
                return await response.json(content_type=None)

    def _fallback(self, reason: str) -> SentimentResult:
        self._default_results += 1
        logger.warning(f"Sentiment inference unavailable ({reason}), using neutral default")
        return DEFAULT_SENTIMENT

    def get_stats(self) -> Dict[str, int]:
        return {
            "model_results": self._model_results,
            "default_results": self._default_results
        }
