"""Test configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import pytest

from toolrelay.core.domain.enums import GenerationMode
from toolrelay.core.domain.errors import ToolExecutionError
from toolrelay.infrastructure.persistence.in_memory_store import InMemoryConversationStore
from toolrelay.infrastructure.tools.static.registry import StaticToolRegistry


class ScriptedLLMProvider:
    """LLMProviderProtocol fake replaying canned replies in order.

    Replies may be strings or exceptions (raised instead of returned).
    Summarize-mode calls are answered from ``summaries``.
    """

    def __init__(
        self,
        replies: Iterable[str | Exception],
        summaries: Iterable[str | Exception] = (),
    ) -> None:
        self.replies = list(replies)
        self.summaries = list(summaries)
        self.calls: list[tuple[list[dict[str, Any]], GenerationMode]] = []

    @property
    def tool_call_requests(self) -> list[list[dict[str, Any]]]:
        return [messages for messages, mode in self.calls if mode == GenerationMode.TOOL_CALL]

    async def generate(
        self,
        messages: list[dict[str, Any]],
        mode: GenerationMode = GenerationMode.TOOL_CALL,
    ) -> str:
        self.calls.append((messages, mode))
        queue = self.summaries if mode == GenerationMode.SUMMARIZE else self.replies
        if not queue:
            raise AssertionError(f"Unexpected {mode.value} call")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def reply(
    tool_calls: list[tuple[str, dict[str, Any]]] | None = None,
    content: str | None = None,
    needs_more_work: bool | None = None,
) -> str:
    """Build a schema-conformant model reply."""
    payload: dict[str, Any] = {}
    if tool_calls is not None:
        payload["toolCalls"] = [{"name": n, "arguments": a} for n, a in tool_calls]
    if content is not None:
        payload["content"] = content
    if needs_more_work is not None:
        payload["needsMoreWork"] = needs_more_work
    return json.dumps(payload)


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def registry():
    """Two in-process servers: files (read_file, write_file) and search (search)."""
    registry = StaticToolRegistry()

    async def read_file(path: str) -> str:
        if path == "missing.txt":
            raise ToolExecutionError(f"No such file: {path}")
        return f"contents of {path}"

    async def write_file(path: str, text: str) -> dict[str, Any]:
        return {"path": path, "written": len(text)}

    async def search(query: str) -> list[str]:
        return [f"result for {query}"]

    registry.register("files", "read_file", read_file, description="Read a file")
    registry.register("files", "write_file", write_file, description="Write a file")
    registry.register("search", "search", search, description="Search the web")
    return registry
