"""
Fake transport and tokenizer for testing.

Provides canned responses so tests can exercise the client and the stream
machine without hitting a real endpoint.
"""

from __future__ import annotations

import json
from typing import AsyncIterator

from parley.errors import ChatError


class WordTokenizer:
    """One token per whitespace-separated word."""

    def count_tokens(self, text: str) -> int:
        return len(text.split())


class MockTransport:
    """
    A transport that returns pre-configured responses.

    Usage::

        transport = MockTransport(events=[
            content_event("Hello"),
            usage_event(3, 1),
            "[DONE]",
        ])

    Parameters
    ----------
    response:
        The dict returned by ``send``.
    events:
        Payloads yielded by ``send_stream``.  A ``ChatError`` instance in the
        list is raised at that point instead.
    error:
        Raised by ``send`` instead of returning *response*.
    """

    def __init__(
        self,
        response: dict | None = None,
        events: list[str | ChatError] | None = None,
        error: ChatError | None = None,
    ) -> None:
        self._response = response or {}
        self._events = events or []
        self._error = error
        self.bodies: list[dict] = []
        self.streams_closed = 0

    async def send(self, body: dict) -> dict:
        self.bodies.append(body)
        if self._error is not None:
            raise self._error
        return self._response

    async def send_stream(self, body: dict) -> AsyncIterator[str]:
        self.bodies.append(body)
        try:
            for event in self._events:
                if isinstance(event, ChatError):
                    raise event
                yield event
        finally:
            self.streams_closed += 1


async def iterate(events: list[str | ChatError]) -> AsyncIterator[str]:
    """Bare async iterator over payloads, raising any ``ChatError`` entries."""
    for event in events:
        if isinstance(event, ChatError):
            raise event
        yield event


# ---------------------------------------------------------------------------
# Event payload builders
# ---------------------------------------------------------------------------


def _chunk(delta: dict, finish_reason: str | None = None) -> str:
    return json.dumps(
        {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "choices": [
                {"index": 0, "delta": delta, "finish_reason": finish_reason}
            ],
            "usage": None,
        }
    )


def role_event() -> str:
    return _chunk({"role": "assistant", "content": ""})


def content_event(text: str) -> str:
    return _chunk({"content": text})


def reasoning_event(text: str) -> str:
    return _chunk({"reasoning": text})


def refusal_event(text: str) -> str:
    return _chunk({"refusal": text})


def finish_event(reason: str = "stop") -> str:
    return _chunk({}, finish_reason=reason)


def usage_event(
    prompt_tokens: int,
    completion_tokens: int,
    cached: int | None = None,
    reasoning: int | None = None,
) -> str:
    usage: dict = {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }
    if cached is not None:
        usage["prompt_tokens_details"] = {"cached_tokens": cached}
    if reasoning is not None:
        usage["completion_tokens_details"] = {"reasoning_tokens": reasoning}
    return json.dumps({"id": "chatcmpl-1", "choices": [], "usage": usage})


def completion_response(
    content: str | None,
    reasoning: str | None = None,
    refusal: str | None = None,
    prompt_tokens: int = 10,
    completion_tokens: int = 5,
) -> dict:
    """A non-streamed ``chat.completion`` response body."""
    message: dict = {"role": "assistant", "content": content}
    if reasoning is not None:
        message["reasoning"] = reasoning
    if refusal is not None:
        message["refusal"] = refusal
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }
