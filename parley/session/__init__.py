"""Conversation state kept between requests."""

from parley.session.context import ConversationContext, ConversationTurn

__all__ = [
    "ConversationContext",
    "ConversationTurn",
]
