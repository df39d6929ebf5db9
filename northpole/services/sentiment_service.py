"""
Mood detection for child messages.
"""

import re
from textblob import TextBlob
from loguru import logger

SAD_KEYWORDS = [
    "sad", "scared", "afraid", "lonely", "miss", "cry", "crying", "sick",
    "hurt", "upset", "worried", "bullied", "nobody likes",
]
_SAD_PATTERN = re.compile(r"\b(" + "|".join(re.escape(kw) for kw in SAD_KEYWORDS) + r")\b", re.IGNORECASE)

MOOD_THRESHOLDS = (
    (0.3, "happy"),
    (-0.2, "neutral"),
)


def detect_mood(text: str) -> str:
    """
    Return "happy", "neutral" or "sad" for a child's message.
    """
    if _SAD_PATTERN.search(text):
        return "sad"

    try:
        polarity = TextBlob(text).sentiment.polarity  # -1.0 … 1.0
    except Exception as e:
        logger.error(f"Mood detection error: {e}")
        return "neutral"

    for threshold, mood in MOOD_THRESHOLDS:
        if polarity >= threshold:
            return mood
    return "sad"
