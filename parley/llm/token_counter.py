"""
Token counting backed by tiktoken.

The encoding is loaded lazily on the first call, so a ``TokenCounter`` can be
created (and shared between clients) without paying the load cost up front.
A counter is only needed when conversation history limits are configured.
"""

from __future__ import annotations

from typing import Any, Protocol

import tiktoken

from parley.errors import TokenizerUnavailable
from parley.llm.types import Content, content_text


class Tokenizer(Protocol):
    """Anything that maps text to a deterministic token count."""

    def count_tokens(self, text: str) -> int: ...


class TokenCounter:
    """
    Count tokens with a tiktoken BPE encoding.

    Parameters
    ----------
    encoding:
        Name passed to ``tiktoken.get_encoding``.  ``o200k_base`` matches
        the gpt-4o family of models.
    """

    def __init__(self, encoding: str = "o200k_base") -> None:
        self.encoding = encoding
        self._enc: Any = None

    def _encoder(self) -> Any:
        if self._enc is None:
            try:
                self._enc = tiktoken.get_encoding(self.encoding)
            except Exception as exc:
                raise TokenizerUnavailable(
                    f"Failed to initialize tokenizer {self.encoding!r}: {exc}"
                ) from exc
        return self._enc

    def count_tokens(self, text: str) -> int:
        """Return the token count for a plain string."""
        if not text:
            return 0
        return len(self._encoder().encode(text))


def count_content(tokenizer: Tokenizer, content: Content) -> int:
    """Count the tokens of a request.  Image and file parts count as zero."""
    return tokenizer.count_tokens(content_text(content))
