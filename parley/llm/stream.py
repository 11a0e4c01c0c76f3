"""
Incremental decoding of a streamed chat completion.

:class:`CompletionStream` wraps the raw event payloads of one streamed
response and yields :data:`~parley.llm.types.Delta` objects while enforcing
the order the service must follow::

    reasoning*  content*  usage?  [DONE]

State transitions per decoded delta:

    ===================  ===================  =====================  ===================
    state                reasoning            content                usage
    ===================  ===================  =====================  ===================
    WAITING_FOR_DATA,    RECEIVING_REASONING  RECEIVING_CONTENT      WAITING_FOR_DONE
    RECEIVING_REASONING
    RECEIVING_CONTENT    error                append to partial      flush, WAITING_FOR_DONE
    WAITING_FOR_DONE     error                error                  error
    ===================  ===================  =====================  ===================

The buffered answer is handed to ``on_complete`` at most once: on usage, on
the ``[DONE]`` sentinel, at the end of the event sequence, or right before
an error is raised.  A stream that is closed or abandoned early never calls
``on_complete``; the partial answer is forfeited.

Anything arriving after ``[DONE]`` (another payload or a transport error) is
discarded and the stream ends cleanly.
"""

from __future__ import annotations

import enum
import logging
from typing import AsyncIterable, Callable

from parley.errors import ChatError, ProtocolViolation
from parley.llm.decoder import SENTINEL, decode_delta
from parley.llm.types import ContentDelta, Delta, ReasoningDelta, UsageDelta

logger = logging.getLogger(__name__)


class StreamState(enum.Enum):
    WAITING_FOR_DATA = "waiting_for_data"
    RECEIVING_REASONING = "receiving_reasoning"
    RECEIVING_CONTENT = "receiving_content"
    WAITING_FOR_DONE = "waiting_for_done"
    WAITING_FOR_END_OF_STREAM = "waiting_for_end_of_stream"
    TERMINATED = "terminated"


class CompletionStream:
    """
    Async iterator of deltas for one in-flight response.

    Parameters
    ----------
    events:
        Raw event payloads as produced by the transport.  Iteration may raise
        a :class:`~parley.errors.ChatError` (e.g. ``TransportFailure``).
    on_complete:
        Called with the full answer text once the answer is final.

    The stream is single-consumer and cannot be restarted.  Errors are
    raised from ``__anext__`` and end the stream.
    """

    def __init__(
        self,
        events: AsyncIterable[str],
        on_complete: Callable[[str], None],
    ) -> None:
        self._events = events.__aiter__()
        self._on_complete = on_complete
        self._partial: str | None = None
        self.state = StreamState.WAITING_FOR_DATA

    def __aiter__(self) -> CompletionStream:
        return self

    async def __anext__(self) -> Delta:
        while self.state is not StreamState.TERMINATED:
            try:
                payload = await self._events.__anext__()
            except StopAsyncIteration:
                await self._terminate()
                break
            except ChatError as exc:
                if self.state is StreamState.WAITING_FOR_END_OF_STREAM:
                    logger.debug("Discarding error after end of response: %s", exc)
                    await self._terminate()
                    break
                await self._terminate()
                raise

            if self.state is StreamState.WAITING_FOR_END_OF_STREAM:
                logger.debug("Discarding event after end of response: %.200s", payload)
                await self._terminate()
                break

            if payload == SENTINEL:
                self._flush()
                self.state = StreamState.WAITING_FOR_END_OF_STREAM
                continue

            try:
                delta = decode_delta(payload)
                if delta is None:
                    continue
                self._advance(delta)
            except ChatError:
                await self._terminate()
                raise
            return delta

        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Abandon the stream.  A partial answer is not committed."""
        if self.state is not StreamState.TERMINATED:
            self._partial = None
            self.state = StreamState.TERMINATED
            await self._close_events()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _advance(self, delta: Delta) -> None:
        state = self.state

        if state is StreamState.WAITING_FOR_DONE:
            if isinstance(delta, ReasoningDelta):
                raise ProtocolViolation("Unexpected stream event: reasoning after usage")
            if isinstance(delta, ContentDelta):
                raise ProtocolViolation("Unexpected stream event: content after usage")
            raise ProtocolViolation("Unexpected stream event: duplicate usage")

        if isinstance(delta, ReasoningDelta):
            if state is StreamState.RECEIVING_CONTENT:
                raise ProtocolViolation("Unexpected stream event: reasoning after content")
            self.state = StreamState.RECEIVING_REASONING
        elif isinstance(delta, ContentDelta):
            self._partial = (self._partial or "") + delta.text
            self.state = StreamState.RECEIVING_CONTENT
        elif isinstance(delta, UsageDelta):
            self._flush()
            self.state = StreamState.WAITING_FOR_DONE

    def _flush(self) -> None:
        if self._partial is not None:
            response, self._partial = self._partial, None
            self._on_complete(response)

    async def _terminate(self) -> None:
        self._flush()
        self.state = StreamState.TERMINATED
        await self._close_events()

    async def _close_events(self) -> None:
        aclose = getattr(self._events, "aclose", None)
        if aclose is not None:
            await aclose()
