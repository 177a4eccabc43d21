"""
File-Based Conversation Store

Implements ``ConversationStoreProtocol`` with one JSON Lines file per
conversation:

    {work_dir}/conversations/{conversation_id}.jsonl

Every appended message is one line. Appends are serialized per conversation
with asyncio locks and fsynced. A line torn by a crash is closed off with a
newline before the next append, so it is skipped on load and later turns
stay readable.
"""

import asyncio
import json
import os
import re
from pathlib import Path

import aiofiles
import structlog

from toolrelay.core.domain.models import Message

_CONVERSATION_ID = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


def is_valid_conversation_id(conversation_id: str) -> bool:
    """Whether ``conversation_id`` is safe to use as a file name."""
    return bool(_CONVERSATION_ID.match(conversation_id))


class FileConversationStore:
    """
    Append-only JSONL conversation persistence.

    Example:
        >>> store = FileConversationStore(work_dir=".toolrelay")
        >>> await store.append("conv-1", Message.user("hello"))
        >>> messages = await store.load("conv-1")
    """

    def __init__(self, work_dir: str | Path = ".toolrelay") -> None:
        self.work_dir = Path(work_dir)
        self.conversations_dir = self.work_dir / "conversations"
        self.conversations_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        self._locks_lock = asyncio.Lock()
        self.logger = structlog.get_logger(__name__).bind(component="conversation_store")

    def _path(self, conversation_id: str) -> Path:
        if not is_valid_conversation_id(conversation_id):
            raise ValueError(f"Invalid conversation id: {conversation_id!r}")
        return self.conversations_dir / f"{conversation_id}.jsonl"

    async def _get_lock(self, conversation_id: str) -> asyncio.Lock:
        """Get or create the lock for a conversation."""
        async with self._locks_lock:
            if conversation_id not in self._locks:
                self._locks[conversation_id] = asyncio.Lock()
            return self._locks[conversation_id]

    async def append(self, conversation_id: str, message: Message) -> None:
        """
        Append one message as a JSON line and fsync it.

        If the file does not end with a newline (a torn write), one is written
        first so the new line does not merge with the partial one.

        Raises:
            ValueError: If the conversation id is not filesystem-safe.
            OSError: If the write fails.
        """
        path = self._path(conversation_id)
        line = json.dumps(message.to_dict(), ensure_ascii=False) + "\n"

        async with await self._get_lock(conversation_id):
            try:
                if await self._has_torn_tail(path):
                    self.logger.warning(
                        "conversation_torn_line_closed", conversation_id=conversation_id
                    )
                    line = "\n" + line
                async with aiofiles.open(path, "a", encoding="utf-8") as f:
                    await f.write(line)
                    await f.flush()
                    await asyncio.to_thread(os.fsync, f.fileno())
            except OSError as exc:
                self.logger.error(
                    "conversation_append_failed",
                    conversation_id=conversation_id,
                    error=str(exc),
                )
                raise

        self.logger.debug(
            "conversation_appended",
            conversation_id=conversation_id,
            role=message.role.value,
        )

    @staticmethod
    async def _has_torn_tail(path: Path) -> bool:
        if not path.exists() or path.stat().st_size == 0:
            return False
        async with aiofiles.open(path, "rb") as f:
            await f.seek(-1, os.SEEK_END)
            return await f.read(1) != b"\n"

    async def load(self, conversation_id: str) -> list[Message]:
        """
        Load all messages of a conversation in order.

        Unknown ids yield an empty list. Lines torn by a crash mid-write are
        skipped.
        """
        path = self._path(conversation_id)
        if not path.exists():
            return []

        async with await self._get_lock(conversation_id):
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw_lines = (await f.read()).splitlines()

        messages: list[Message] = []
        for line_number, line in enumerate(raw_lines, start=1):
            if not line.strip():
                continue
            try:
                messages.append(Message.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError) as exc:
                self.logger.warning(
                    "conversation_line_skipped",
                    conversation_id=conversation_id,
                    line=line_number,
                    error=str(exc),
                )
        return messages

    async def list_conversations(self) -> list[str]:
        """Return stored conversation ids, most recently modified first."""
        files = sorted(
            self.conversations_dir.glob("*.jsonl"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        return [p.stem for p in files]
