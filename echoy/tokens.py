"""Approximate token accounting for the status panel."""

import logging

import tiktoken

from echoy.history import ChatHistory

logger = logging.getLogger(__name__)


class TokenCounter:
    """Counts and caches tokens per message text."""

    def __init__(self, encoding: str = "o200k_base"):
        self.encoding = encoding
        self._encoder = None
        self._cache: dict[int, int] = {}

    def encode(self, text: str) -> int:
        """Converts a string to a token count"""
        try:
            if self._encoder is None:
                self._encoder = tiktoken.get_encoding(self.encoding)
            count = len(self._encoder.encode(text))
        except Exception as e:
            logger.warning(f"Token counting unavailable: {e}")
            count = 0
        return count

    def count(self, history: ChatHistory) -> int:
        total = 0
        for msg in history.messages:
            key = hash(msg.text)
            if key not in self._cache:
                self._cache[key] = self.encode(msg.text)
            total += self._cache[key]
        return total
