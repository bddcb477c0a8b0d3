"""
Token Scanner

Locates token-delimited secret spans inside a block of text.
"""

import bisect
import logging
from typing import List

import regex

from .models import SecretMatch, TokenPair

logger = logging.getLogger(__name__)


class TokenScanner:
    """Stateless matcher for spans delimited by a TokenPair"""

    def __init__(self, tokens: TokenPair):
        self.tokens = tokens
        self.pattern = self._build_pattern(tokens)

    @staticmethod
    def _build_pattern(tokens: TokenPair) -> "regex.Pattern":
        """
        Compile the span pattern.

        The payload is taken lazily up to the first end token on the line.
        Without an end token it runs to end of line and must not be empty.
        """
        start = regex.escape(tokens.start)
        end = regex.escape(tokens.end)
        return regex.compile(
            rf"{start}(?:(?P<payload>[^\r\n]*?)(?P<end>{end})|(?P<payload>[^\r\n]+?)(?=\r?$))",
            regex.MULTILINE,
        )

    def find_all(self, text: str) -> List[SecretMatch]:
        """
        Find every span in text, in document order

        Args:
            text: Text to scan

        Returns:
            List of SecretMatch objects, empty if nothing matched
        """
        line_starts = self._line_starts(text)
        matches = []

        for found in self.pattern.finditer(text):
            start, end = found.span()
            line_index = bisect.bisect_right(line_starts, start) - 1
            line_offset = line_starts[line_index]

            matches.append(
                SecretMatch(
                    matched_text=found.group(0),
                    payload=found.group("payload"),
                    start_offset=start,
                    end_offset=end,
                    line_number=line_index + 1,
                    column_start=start - line_offset,
                    column_end=end - line_offset,
                    has_end_token=found.group("end") is not None,
                )
            )

        logger.debug(f"Found {len(matches)} spans for token {self.tokens.token!r}")
        return matches

    def contains_span(self, text: str) -> bool:
        """Check whether text holds at least one span"""
        return self.pattern.search(text) is not None

    def remove_tokens(self, text: str) -> str:
        """
        Strip a literal start prefix and end suffix from matched text.

        A token that is not present is left alone.
        """
        if text.startswith(self.tokens.start):
            text = text[len(self.tokens.start) :]
        if text.endswith(self.tokens.end):
            text = text[: -len(self.tokens.end)]
        return text

    @staticmethod
    def _line_starts(text: str) -> List[int]:
        starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                starts.append(index + 1)
        return starts


def scan(text: str, tokens: TokenPair) -> List[SecretMatch]:
    """Find every span delimited by tokens in text"""
    return TokenScanner(tokens).find_all(text)


def remove_tokens(text: str, tokens: TokenPair) -> str:
    """Strip the sentinel tokens from a matched span"""
    return TokenScanner(tokens).remove_tokens(text)
