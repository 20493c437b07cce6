"""
Signal Classifier for the Social Signal Bot.

Combines remote model sentiment with keyword heuristics into a
BUY / SELL / NEUTRAL signal with a confidence percentage.

Scoring (FIXED):
    sentiment_weight = polarity * 40
    keyword_weight   = (bullish_count - bearish_count) * 15
    final_score      = sentiment_weight + keyword_weight

    final_score > 20   -> BUY      confidence = min(95, 65 + |final_score|)
    final_score < -20  -> SELL     confidence = min(95, 65 + |final_score|)
    otherwise          -> NEUTRAL  confidence = max(30, 50 - |final_score|)

    symbols present    -> confidence += 15 (applied AFTER the clamps)

The symbol bonus is not re-clamped, so confidence can reach 110.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

import keyword_scorer
from sentiment_classifier import SentimentClassifier, SentimentResult
from text_normalizer import extract_symbols, normalize


logger = logging.getLogger("signal_classifier")


# =============================================================================
# CONSTANTS
# =============================================================================

SENTIMENT_WEIGHT = 40
KEYWORD_WEIGHT = 15

BUY_THRESHOLD = 20
SELL_THRESHOLD = -20

DIRECTIONAL_BASE_CONFIDENCE = 65
DIRECTIONAL_MAX_CONFIDENCE = 95
NEUTRAL_BASE_CONFIDENCE = 50
NEUTRAL_MIN_CONFIDENCE = 30
SYMBOL_CONFIDENCE_BONUS = 15

# Keyword-only fallback classification
FALLBACK_BASE_CONFIDENCE = 50
FALLBACK_PER_KEYWORD = 10
FALLBACK_MAX_CONFIDENCE = 75
FALLBACK_NEUTRAL_CONFIDENCE = 40


# =============================================================================
# SIGNAL
# =============================================================================

class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class Signal:
    """Classified trading signal for one post."""
    type: SignalType
    confidence: int
    symbols: Tuple[str, ...]
    reasoning: str
    sentiment_score: float
    fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "symbols": list(self.symbols),
            "reasoning": self.reasoning,
            "sentiment_score": self.sentiment_score,
            "fallback": self.fallback
        }


def round_confidence(value: float) -> int:
    """Round half up, matching the reference scoring."""
    return int(math.floor(value + 0.5))


def compute_final_score(polarity: float, keywords: keyword_scorer.KeywordScore) -> float:
    return polarity * SENTIMENT_WEIGHT + keywords.net * KEYWORD_WEIGHT


def classify(
    clean_text: str,
    sentiment: SentimentResult,
    symbols: Sequence[str]
) -> Signal:
    """
    Classify a normalized post.

    Pure function of (clean_text, sentiment, symbols).
    """
    keywords = keyword_scorer.score(clean_text)
    final_score = compute_final_score(sentiment.polarity, keywords)
    polarity_text = f"{sentiment.polarity:.2f}"

    if final_score > BUY_THRESHOLD:
        signal_type = SignalType.BUY
        confidence = min(DIRECTIONAL_MAX_CONFIDENCE, DIRECTIONAL_BASE_CONFIDENCE + abs(final_score))
        reasoning = f"Sentiment: {polarity_text} + {keywords.bullish_count} bullish keywords"
    elif final_score < SELL_THRESHOLD:
        signal_type = SignalType.SELL
        confidence = min(DIRECTIONAL_MAX_CONFIDENCE, DIRECTIONAL_BASE_CONFIDENCE + abs(final_score))
        reasoning = f"Sentiment: {polarity_text} + {keywords.bearish_count} bearish keywords"
    else:
        signal_type = SignalType.NEUTRAL
        confidence = max(NEUTRAL_MIN_CONFIDENCE, NEUTRAL_BASE_CONFIDENCE - abs(final_score))
        reasoning = f"Sentiment neutral ({polarity_text})"

    unique_symbols = tuple(dict.fromkeys(symbols))
    if unique_symbols:
        confidence += SYMBOL_CONFIDENCE_BONUS
        reasoning += f" [{', '.join(unique_symbols)}]"

    return Signal(
        type=signal_type,
        confidence=round_confidence(confidence),
        symbols=unique_symbols,
        reasoning=reasoning,
        sentiment_score=sentiment.polarity
    )


def fallback_classify(text: str) -> Signal:
    """
    Keyword-only classification on the raw text.

    Used when the primary analysis itself fails outright.
    """
    keywords = keyword_scorer.score_fallback(text)
    symbols = extract_symbols(text or "")

    if keywords.bullish_count > keywords.bearish_count:
        signal_type = SignalType.BUY
        confidence = FALLBACK_BASE_CONFIDENCE + FALLBACK_PER_KEYWORD * keywords.bullish_count
    elif keywords.bearish_count > keywords.bullish_count:
        signal_type = SignalType.SELL
        confidence = FALLBACK_BASE_CONFIDENCE + FALLBACK_PER_KEYWORD * keywords.bearish_count
    else:
        signal_type = SignalType.NEUTRAL
        confidence = FALLBACK_NEUTRAL_CONFIDENCE

    return Signal(
        type=signal_type,
        confidence=min(FALLBACK_MAX_CONFIDENCE, confidence),
        symbols=symbols,
        reasoning=f"Fallback: {keywords.bullish_count}B/{keywords.bearish_count}B",
        sentiment_score=0.0,
        fallback=True
    )


async def analyze_post(text: str, sentiment_classifier: SentimentClassifier) -> Signal:
    """
    Full analysis of one raw post.

    normalize -> extract symbols -> remote sentiment -> classify.
    If any step raises, falls back to keyword-only classification.
    """
    try:
        clean_text = normalize(text)
        symbols = extract_symbols(text)
        sentiment = await sentiment_classifier.classify(clean_text)
        return classify(clean_text, sentiment, symbols)
    except Exception as e:
        logger.error(f"Analysis failed, using fallback classification: {e}")
        return fallback_classify(text)
