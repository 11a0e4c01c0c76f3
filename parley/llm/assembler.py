"""
Request-body assembly for the ``/chat/completions`` endpoint.

Pure functions: the conversation context and the new request are projected
into the JSON body the transport sends.  Nothing here mutates the context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from parley.llm.types import (
    ROLE_USER,
    Content,
    ContentPart,
    FilePart,
    ImagePart,
    Message,
    TextPart,
)
from parley.session.context import ConversationContext

FLAVOR_OPENAI = "openai"
FLAVOR_OPENROUTER = "openrouter"

# Keys that ``extra_params`` may not override.
_RESERVED_KEYS = frozenset({"model", "messages", "stream", "stream_options"})


@dataclass
class ModelConfig:
    """
    Per-request model options.

    *reasoning_budget* is only understood by OpenRouter; OpenAI endpoints
    take *reasoning_effort* directly.
    """

    model: str = "gpt-4o-mini"
    flavor: str = FLAVOR_OPENAI
    reasoning_effort: str | None = None
    reasoning_budget: int | None = None
    verbosity: str | None = None
    extra_params: dict[str, Any] = field(default_factory=dict)


def part_to_wire(part: ContentPart) -> dict:
    """Convert one content part into its OpenAI wire representation."""
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        image: dict = {"url": part.url}
        if part.detail:
            image["detail"] = part.detail
        return {"type": "image_url", "image_url": image}
    if isinstance(part, FilePart):
        file: dict = {"file_data": part.file_data}
        if part.filename:
            file["filename"] = part.filename
        return {"type": "file", "file": file}
    raise TypeError(f"Unsupported content part: {part!r}")


def content_to_wire(content: Content, as_parts: bool = False) -> str | list[dict]:
    if isinstance(content, str):
        if as_parts:
            return [part_to_wire(TextPart(content))]
        return content
    return [part_to_wire(part) for part in content]


def messages_to_wire(
    messages: Iterable[Message], multimodal: bool = False
) -> list[dict]:
    """Convert messages into wire dicts.  *multimodal* forces user parts arrays."""
    return [
        {
            "role": msg.role,
            "content": content_to_wire(
                msg.content, as_parts=multimodal and msg.role == ROLE_USER
            ),
        }
        for msg in messages
    ]


def reasoning_options(config: ModelConfig) -> dict:
    """Reasoning knobs in the shape the configured API flavor expects."""
    if config.flavor == FLAVOR_OPENROUTER:
        if config.reasoning_budget is not None:
            return {"reasoning": {"max_tokens": config.reasoning_budget}}
        if config.reasoning_effort is not None:
            return {"reasoning": {"effort": config.reasoning_effort}}
        return {}
    if config.reasoning_effort is not None:
        return {"reasoning_effort": config.reasoning_effort}
    return {}


def build_request_body(
    context: ConversationContext,
    request: Content,
    config: ModelConfig,
    stream: bool,
    multimodal: bool = False,
) -> dict:
    """
    Build the request body for *request* on top of *context*.

    Returns
    -------
    dict
        JSON-serialisable body: ``model``, ``messages``, ``stream`` plus any
        reasoning / verbosity options and the configured extra parameters.
    """
    body: dict[str, Any] = {
        "model": config.model,
        "messages": messages_to_wire(context.with_request(request), multimodal),
        "stream": stream,
    }
    if stream:
        body["stream_options"] = {"include_usage": True}
    body.update(reasoning_options(config))
    if config.verbosity is not None:
        body["verbosity"] = config.verbosity

    for key, value in config.extra_params.items():
        if key not in _RESERVED_KEYS:
            body[key] = value
    return body
