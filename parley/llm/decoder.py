"""
Decoding of individual streamed chat-completion events.

Each SSE ``data`` payload (other than the ``[DONE]`` sentinel) is a JSON
``chat.completion.chunk`` object.  :func:`decode_delta` turns one payload
into at most one :data:`~parley.llm.types.Delta`:

- non-empty ``content``               -> ``ContentDelta``
- non-empty ``reasoning`` (OpenRouter) or ``reasoning_content``
                                      -> ``ReasoningDelta``
- a ``usage`` object                  -> ``UsageDelta``
- anything else (role-only chunk, finish marker)
                                      -> ``None``

A chunk yields one delta only.  Reasoning or usage riding on a chunk that
also carries content is dropped (logged at DEBUG), as is usage riding on a
reasoning chunk.  A chunk whose fields have the wrong JSON types is a
``DecodeFailure``.
"""

from __future__ import annotations

import json
import logging

from parley.errors import ApiRejection, DecodeFailure, Refusal
from parley.llm.types import (
    ContentDelta,
    Delta,
    ReasoningDelta,
    TokenUsage,
    UsageDelta,
)

logger = logging.getLogger(__name__)

SENTINEL = "[DONE]"


def decode_delta(payload: str) -> Delta | None:
    """
    Decode one non-sentinel event payload.

    Raises
    ------
    DecodeFailure
        Payload is not a JSON object, or carries neither ``choices`` nor
        ``usage``.
    ApiRejection
        The service reported an error object in the middle of the stream.
    Refusal
        The model declined to answer.
    """
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise DecodeFailure(f"Completion delta JSON parsing error: {exc}") from exc

    if not isinstance(chunk, dict):
        raise DecodeFailure(
            f"Completion delta is not a JSON object: {payload[:200]}"
        )

    error = chunk.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else None
        raise ApiRejection(message or str(error))

    if "choices" not in chunk and "usage" not in chunk:
        raise DecodeFailure("Completion delta has neither `choices` nor `usage`")

    try:
        return _chunk_to_delta(chunk)
    except (AttributeError, TypeError, ValueError, KeyError, IndexError) as exc:
        raise DecodeFailure(
            f"Malformed completion delta ({exc}): {payload[:200]}"
        ) from exc


def _chunk_to_delta(chunk: dict) -> Delta | None:
    usage = chunk.get("usage")
    if usage is not None and not isinstance(usage, dict):
        raise TypeError("`usage` is not an object")

    choices = chunk.get("choices") or []
    if not isinstance(choices, list):
        raise TypeError("`choices` is not a list")

    if choices:
        delta = choices[0].get("delta") or {}

        refusal = delta.get("refusal")
        if refusal:
            raise Refusal(refusal)

        content = _text_field(delta, "content")
        reasoning = _text_field(delta, "reasoning") or _text_field(
            delta, "reasoning_content"
        )
        if content:
            if reasoning:
                logger.debug(
                    "Dropping reasoning sent alongside content: %.200s", reasoning
                )
            if usage is not None:
                logger.debug("Dropping usage sent alongside content: %s", usage)
            return ContentDelta(content)

        if reasoning:
            if usage is not None:
                logger.debug("Dropping usage sent alongside reasoning: %s", usage)
            return ReasoningDelta(reasoning)

    if usage is not None:
        return UsageDelta(TokenUsage.from_api(usage))

    return None


def _text_field(delta: dict, name: str) -> str | None:
    value = delta.get(name)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"`{name}` is not a string")
    return value
