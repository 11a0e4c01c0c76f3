"""Core types for the LLM subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextPart:
    """Plain text inside a multi-part request."""

    text: str


@dataclass(frozen=True)
class ImagePart:
    """An image reference: an ``https://`` URL or a base64 ``data:`` URL."""

    url: str
    detail: str | None = None


@dataclass(frozen=True)
class FilePart:
    """An attached file, encoded as a base64 ``data:`` URL."""

    file_data: str
    filename: str | None = None


ContentPart = Union[TextPart, ImagePart, FilePart]

# A request is either plain text or an ordered sequence of parts.
Content = Union[str, "list[ContentPart]"]


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: Content


@dataclass(frozen=True)
class TokenUsage:
    """
    Token accounting reported by the service for one completion.

    *tokens_in_cached* and *tokens_reasoning* are only filled in when the
    endpoint reports the corresponding breakdown.
    """

    tokens_in: int
    tokens_out: int
    tokens_in_cached: int | None = None
    tokens_reasoning: int | None = None

    @classmethod
    def from_api(cls, usage: dict) -> TokenUsage:
        prompt_details = usage.get("prompt_tokens_details") or {}
        completion_details = usage.get("completion_tokens_details") or {}
        return cls(
            tokens_in=int(usage.get("prompt_tokens") or 0),
            tokens_out=int(usage.get("completion_tokens") or 0),
            tokens_in_cached=prompt_details.get("cached_tokens"),
            tokens_reasoning=completion_details.get("reasoning_tokens"),
        )


@dataclass(frozen=True)
class ReasoningDelta:
    """A fragment of the model's reasoning.  Always precedes the content."""

    text: str


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of the answer text."""

    text: str


@dataclass(frozen=True)
class UsageDelta:
    """Token usage for the whole response.  Always the last delta."""

    usage: TokenUsage


Delta = Union[ReasoningDelta, ContentDelta, UsageDelta]


@dataclass
class Completion:
    """A complete, non-streamed assistant response."""

    response: str
    usage: TokenUsage
    reasoning: str | None = None


def content_text(content: Content) -> str:
    """Return the text carried by *content*, joining text parts with newlines."""
    if isinstance(content, str):
        return content
    return "\n".join(part.text for part in content if isinstance(part, TextPart))
