"""
Token-bounded conversation context.

:class:`ConversationContext` keeps the system message and the log of
request/response turns that are sent along with every new request.  After
each :meth:`~ConversationContext.push` the log is trimmed to a retention
window:

1.  Walk backwards from the most recent turn, starting the running total at
    the system message cost.
2.  Keep a turn while the total *before* it is still below ``min_tokens``
    (so at most one turn above the threshold is kept) and the total *after*
    it does not exceed ``max_tokens``.
3.  The first turn failing either test is dropped along with all older
    turns.
4.  The turn just pushed is always kept, even if it alone crosses
    ``max_tokens``.

With neither bound configured nothing is ever dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from parley.llm.types import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    Content,
    Message,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationTurn:
    """One request/response pair and its token cost."""

    request: Content
    response: str
    token_cost: int


class ConversationContext:
    """
    System message plus the retained conversation turns.

    Parameters
    ----------
    system_message:
        Optional message sent first with every request.
    system_message_tokens:
        Token cost of *system_message*.  Counted towards both bounds.
    min_tokens:
        Keep at least this many tokens of history, but no more than one turn
        above the threshold.
    max_tokens:
        Never keep more than this many tokens (except for the newest turn).
    """

    def __init__(
        self,
        system_message: str | None = None,
        system_message_tokens: int = 0,
        min_tokens: int | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.system_message = system_message
        self.system_message_tokens = system_message_tokens
        self.min_tokens = min_tokens
        self.max_tokens = max_tokens
        self.turns: list[ConversationTurn] = []

    def __len__(self) -> int:
        return len(self.turns)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def with_request(self, request: Content) -> Iterator[Message]:
        """Yield the messages to send: system, past turns, then *request*."""
        if self.system_message is not None:
            yield Message(role=ROLE_SYSTEM, content=self.system_message)
        for turn in self.turns:
            yield Message(role=ROLE_USER, content=turn.request)
            yield Message(role=ROLE_ASSISTANT, content=turn.response)
        yield Message(role=ROLE_USER, content=request)

    def push(self, request: Content, response: str, token_cost: int) -> None:
        """Append a turn and trim the log back into the retention window."""
        self.turns.append(ConversationTurn(request, response, token_cost))
        self._keep_recent()

    def total_tokens(self) -> int:
        """Size of the context in tokens, system message included."""
        return self.system_message_tokens + sum(t.token_cost for t in self.turns)

    def clear(self) -> None:
        """Forget all turns.  The system message stays."""
        self.turns.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _keep_recent(self) -> None:
        if self.min_tokens is None and self.max_tokens is None:
            return

        min_tokens = self.min_tokens if self.min_tokens is not None else float("inf")
        max_tokens = self.max_tokens if self.max_tokens is not None else float("inf")

        # The newest turn is never discarded.
        newest = self.turns[-1]
        running = self.system_message_tokens + newest.token_cost
        keep = 1

        for turn in reversed(self.turns[:-1]):
            if running >= min_tokens or running + turn.token_cost > max_tokens:
                break
            running += turn.token_cost
            keep += 1

        discard = len(self.turns) - keep
        if discard:
            logger.debug(
                "Dropping %d old turn(s); keeping %d turn(s), %d tokens",
                discard,
                keep,
                running,
            )
            del self.turns[:discard]
