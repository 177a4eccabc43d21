"""In-memory conversation store for tests and embedding."""

import asyncio
from collections import defaultdict

from toolrelay.core.domain.models import Message


class InMemoryConversationStore:
    """Conversation store keeping everything in a dict. Not durable."""

    def __init__(self) -> None:
        self._conversations: dict[str, list[Message]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, conversation_id: str, message: Message) -> None:
        async with self._lock:
            self._conversations[conversation_id].append(message)

    async def load(self, conversation_id: str) -> list[Message]:
        async with self._lock:
            return list(self._conversations.get(conversation_id, []))

    async def list_conversations(self) -> list[str]:
        async with self._lock:
            return list(self._conversations.keys())
