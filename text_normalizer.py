"""
Text Normalizer for the Social Signal Bot.

Cleans raw post text before sentiment scoring and extracts cash-tag
symbols ($BTC, $ETH, ...) from the ORIGINAL text.

RULES:
- Pure functions, no I/O
- normalize() is idempotent
- Symbols are always read from the raw text, never the cleaned text
"""

import re
from typing import Tuple


# =============================================================================
# REGEX RULES
# =============================================================================

URL_PATTERN = re.compile(r"https?://\S+")
MENTION_PATTERN = re.compile(r"@\S+")
HASHTAG_PATTERN = re.compile(r"#\S+")

# Dollar sign followed by 2-6 uppercase ASCII letters (case-sensitive)
SYMBOL_PATTERN = re.compile(r"\$([A-Z]{2,6})")


def normalize(text: str) -> str:
    """
    Remove URLs, @mentions and #hashtags, then trim.

    Order matters: URLs first so that '@' or '#' inside a link
    is removed together with the link.
    """
    if not text:
        return ""

    cleaned = URL_PATTERN.sub("", text)
    cleaned = MENTION_PATTERN.sub("", cleaned)
    cleaned = HASHTAG_PATTERN.sub("", cleaned)

    return cleaned.strip()


def extract_symbols(text: str) -> Tuple[str, ...]:
    """
    Extract distinct cash-tag symbols, first-seen order.

    "$BTC and $ETH, $BTC again" -> ("BTC", "ETH")
    """
    if not text:
        return ()

    matches = SYMBOL_PATTERN.findall(text)
    return tuple(dict.fromkeys(matches))
