"""Conversation persistence implementations."""

from toolrelay.infrastructure.persistence.file_conversation_store import FileConversationStore
from toolrelay.infrastructure.persistence.in_memory_store import InMemoryConversationStore

__all__ = ["FileConversationStore", "InMemoryConversationStore"]
