"""
Content filter applied to search results
"""
from typing import Iterable, Optional

from ..config import settings


class ContentFilter:
    """Word-list moderation stub"""

    def __init__(self, words: Optional[Iterable[str]] = None):
        source = settings.FILTERED_WORDS if words is None else words
        self.words = [w.lower() for w in source if w]

    def is_filtered(self, message: str) -> bool:
        """True when the message contains a filtered word"""
        text = (message or "").lower()
        return any(word in text for word in self.words)
