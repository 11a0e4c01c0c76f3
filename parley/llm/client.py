"""
Chat client -- one conversation against one chat-completions endpoint.

The client owns the :class:`~parley.session.context.ConversationContext`.
Every successful completion extends the context with the new turn; failed
requests leave it untouched, so a single error only loses the turn in
flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from parley.errors import DecodeFailure, MissingField, Refusal
from parley.llm.assembler import FLAVOR_OPENAI, ModelConfig, build_request_body
from parley.llm.stream import CompletionStream
from parley.llm.token_counter import TokenCounter, Tokenizer, count_content
from parley.llm.transport import Auth, ChatTransport
from parley.llm.types import Completion, Content, TokenUsage
from parley.session.context import ConversationContext

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the client needs from its HTTP collaborator."""

    async def send(self, body: dict) -> dict: ...

    def send_stream(self, body: dict) -> Any: ...


@dataclass
class ClientConfig:
    """Everything needed to build a :class:`ChatClient`."""

    auth: Auth | None = None
    api_url: str = "https://api.openai.com/v1/"
    api_version: str | None = None
    timeout: float = 300.0
    model: str = "gpt-4o-mini"
    flavor: str = FLAVOR_OPENAI
    reasoning_effort: str | None = None
    reasoning_budget: int | None = None
    verbosity: str | None = None
    extra_params: dict[str, Any] = field(default_factory=dict)
    system_message: str | None = None
    min_history_tokens: int | None = None
    max_history_tokens: int | None = None
    encoding: str = "o200k_base"


class ChatClient:
    """
    Conversational client.

    Parameters
    ----------
    transport:
        Object exposing ``send(body)`` and ``send_stream(body)``.
    model_config:
        Model id and request options.
    system_message:
        Optional system message sent with every request.
    tokenizer:
        Required for history limits; turn costs are 0 without it.
    min_history_tokens / max_history_tokens:
        Retention window, see :class:`ConversationContext`.
    """

    def __init__(
        self,
        transport: Transport,
        model_config: ModelConfig | None = None,
        system_message: str | None = None,
        tokenizer: Tokenizer | None = None,
        min_history_tokens: int | None = None,
        max_history_tokens: int | None = None,
    ) -> None:
        self.transport = transport
        self.model_config = model_config or ModelConfig()
        self.tokenizer = tokenizer
        system_tokens = (
            tokenizer.count_tokens(system_message)
            if tokenizer is not None and system_message
            else 0
        )
        self.context = ConversationContext(
            system_message=system_message,
            system_message_tokens=system_tokens,
            min_tokens=min_history_tokens,
            max_tokens=max_history_tokens,
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        tokenizer: Tokenizer | None = None,
    ) -> ChatClient:
        """
        Build a client with an httpx transport.

        A tiktoken counter is created only when a history limit is set and
        no *tokenizer* is passed in.
        """
        transport = ChatTransport(
            base_url=config.api_url,
            auth=config.auth,
            api_version=config.api_version,
            timeout=config.timeout,
        )
        windowed = (
            config.min_history_tokens is not None
            or config.max_history_tokens is not None
        )
        if windowed and tokenizer is None:
            tokenizer = TokenCounter(config.encoding)

        return cls(
            transport,
            model_config=ModelConfig(
                model=config.model,
                flavor=config.flavor,
                reasoning_effort=config.reasoning_effort,
                reasoning_budget=config.reasoning_budget,
                verbosity=config.verbosity,
                extra_params=dict(config.extra_params),
            ),
            system_message=config.system_message,
            tokenizer=tokenizer if windowed else None,
            min_history_tokens=config.min_history_tokens,
            max_history_tokens=config.max_history_tokens,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ask(self, request: Content) -> str:
        """Ask a question and return the answer text."""
        completion = await self.request_completion(request)
        return completion.response

    async def request_completion(self, request: Content) -> Completion:
        """Request a non-streamed completion, extending the context on success."""
        data = await self.transport.send(self._body(request, stream=False))

        try:
            completion = _parse_completion(data)
        except (AttributeError, TypeError, ValueError, KeyError) as exc:
            raise DecodeFailure(f"Malformed completion response: {exc}") from exc

        self._extend_context(request, completion.response)
        return completion

    def stream_completion(self, request: Content) -> CompletionStream:
        """
        Stream a completion.

        The request is sent when iteration starts.  The context is extended
        once the stream has produced the final answer.
        """
        events = self.transport.send_stream(self._body(request, stream=True))
        return CompletionStream(
            events, lambda response: self._extend_context(request, response)
        )

    def reset(self) -> None:
        """Start the conversation over, keeping the system message."""
        self.context.clear()

    async def aclose(self) -> None:
        aclose = getattr(self.transport, "aclose", None)
        if aclose is not None:
            await aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _body(self, request: Content, stream: bool) -> dict:
        return build_request_body(
            self.context,
            request,
            self.model_config,
            stream=stream,
            multimodal=not isinstance(request, str),
        )

    def _turn_cost(self, request: Content, response: str) -> int:
        if self.tokenizer is None:
            return 0
        return count_content(self.tokenizer, request) + self.tokenizer.count_tokens(
            response
        )

    def _extend_context(self, request: Content, response: str) -> None:
        self.context.push(request, response, self._turn_cost(request, response))


def _parse_completion(data: dict) -> Completion:
    """Pull the answer out of a ``chat.completion`` body."""
    choices = data.get("choices")
    if not choices:
        raise MissingField("choices")
    if not isinstance(choices, list):
        raise TypeError("`choices` is not a list")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise MissingField("message")

    response = message.get("content")
    if response is None:
        refusal = message.get("refusal")
        if refusal:
            raise Refusal(refusal)
        raise MissingField("content")
    if not isinstance(response, str):
        raise TypeError("`content` is not a string")

    usage = data.get("usage")
    if not isinstance(usage, dict):
        raise MissingField("usage")

    return Completion(
        response=response,
        usage=TokenUsage.from_api(usage),
        reasoning=message.get("reasoning") or message.get("reasoning_content"),
    )
