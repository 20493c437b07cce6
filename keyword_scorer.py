"""
Keyword Scorer for the Social Signal Bot.

Counts bullish / bearish trading vocabulary in post text.

Counting rule (FIXED):
- Substring containment on lowercased text
- Each vocabulary entry counts at most ONCE per text
- No tokenization, no NLP
"""

from dataclasses import dataclass
from typing import Sequence


# =============================================================================
# VOCABULARIES (FIXED - DO NOT MODIFY)
# =============================================================================

BULLISH_WORDS = (
    "moon", "pump", "bull", "buy", "long", "up", "rise", "surge",
    "breakout", "rally", "bullish", "calls", "strength", "momentum",
    "hodl", "diamond hands", "ath", "rocket"
)

BEARISH_WORDS = (
    "dump", "bear", "sell", "short", "down", "fall", "crash",
    "drop", "bearish", "puts", "weakness", "correction",
    "rekt", "paper hands", "fud", "panic"
)

# Reduced vocabularies used by the keyword-only fallback classification
FALLBACK_BULLISH_WORDS = ("moon", "pump", "bull", "buy", "long", "up")
FALLBACK_BEARISH_WORDS = ("dump", "bear", "sell", "short", "down", "crash")


@dataclass(frozen=True)
class KeywordScore:
    """Vocabulary hit counts for one text."""
    bullish_count: int
    bearish_count: int

    @property
    def net(self) -> int:
        return self.bullish_count - self.bearish_count


def count_matches(text_lower: str, vocabulary: Sequence[str]) -> int:
    """Number of vocabulary entries contained in the text."""
    return sum(1 for word in vocabulary if word in text_lower)


def score(text: str) -> KeywordScore:
    """Score text against the full bullish / bearish vocabularies."""
    text_lower = (text or "").lower()
    return KeywordScore(
        bullish_count=count_matches(text_lower, BULLISH_WORDS),
        bearish_count=count_matches(text_lower, BEARISH_WORDS)
    )


def score_fallback(text: str) -> KeywordScore:
    """Score text against the reduced fallback vocabularies."""
    text_lower = (text or "").lower()
    return KeywordScore(
        bullish_count=count_matches(text_lower, FALLBACK_BULLISH_WORDS),
        bearish_count=count_matches(text_lower, FALLBACK_BEARISH_WORDS)
    )
