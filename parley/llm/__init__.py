"""LLM subsystem -- transport, request assembly, and streamed-response decoding."""

from parley.llm.assembler import ModelConfig, build_request_body
from parley.llm.client import ChatClient, ClientConfig
from parley.llm.stream import CompletionStream, StreamState
from parley.llm.token_counter import TokenCounter, Tokenizer
from parley.llm.transport import Auth, ChatTransport
from parley.llm.types import (
    Completion,
    ContentDelta,
    Delta,
    FilePart,
    ImagePart,
    Message,
    ReasoningDelta,
    TextPart,
    TokenUsage,
    UsageDelta,
)

__all__ = [
    "Auth",
    "ChatClient",
    "ChatTransport",
    "ClientConfig",
    "Completion",
    "CompletionStream",
    "ContentDelta",
    "Delta",
    "FilePart",
    "ImagePart",
    "Message",
    "ModelConfig",
    "ReasoningDelta",
    "StreamState",
    "TextPart",
    "TokenCounter",
    "TokenUsage",
    "Tokenizer",
    "UsageDelta",
    "build_request_body",
]
