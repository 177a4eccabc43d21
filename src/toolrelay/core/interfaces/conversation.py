"""
Conversation Store Protocol

The agent loop treats the store as write-through: every turn is appended
before the next iteration begins, so a crash mid-loop leaves a consistent,
resumable prefix.
"""

from typing import Protocol

from toolrelay.core.domain.models import Message


class ConversationStoreProtocol(Protocol):
    """Protocol for append-only conversation persistence."""

    async def append(self, conversation_id: str, message: Message) -> None:
        """Durably append one message to a conversation."""
        ...

    async def load(self, conversation_id: str) -> list[Message]:
        """Load a conversation in order. Unknown ids yield an empty list."""
        ...

    async def list_conversations(self) -> list[str]:
        """Return the ids of all stored conversations."""
        ...
