"""Conversation state and persistence."""

from .store import (
    ConversationNotFoundError,
    ConversationState,
    ConversationStore,
    FileConversationStore,
    InMemoryConversationStore,
    conversation_id_for,
)

__all__ = [
    "ConversationNotFoundError",
    "ConversationState",
    "ConversationStore",
    "FileConversationStore",
    "InMemoryConversationStore",
    "conversation_id_for",
]
