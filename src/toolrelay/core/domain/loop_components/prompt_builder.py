"""Prompt window builder for the agent loop."""

from __future__ import annotations

import json
from typing import Any

import structlog

from toolrelay.core.domain.enums import MessageRole
from toolrelay.core.domain.errors import ToolrelayError
from toolrelay.core.domain.loop_components.tool_dispatcher import ToolDispatcher
from toolrelay.core.domain.models import LoopState, Message, ToolCallResult
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.interfaces.tools import ToolDescriptor, ToolServerRegistryProtocol
from toolrelay.core.prompts.loop_prompts import SUMMARY_TURN_TEMPLATE
from toolrelay.core.prompts.prompt_builder import (
    build_loop_system_prompt,
    format_resources,
    format_tools_description,
)


class LoopPromptBuilder:
    """
    Build provider messages for one model call.

    The provider only understands system, user and assistant roles, so tool
    turns are rendered as user text and assistant tool-call turns as the JSON
    object the model produced.
    """

    def __init__(
        self,
        *,
        base_system_prompt: str,
        registry: ToolServerRegistryProtocol,
        dispatcher: ToolDispatcher,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._base_system_prompt = base_system_prompt
        self._registry = registry
        self._dispatcher = dispatcher
        self._logger = logger or structlog.get_logger(__name__).bind(
            component="loop_prompt_builder"
        )
        self._tools_description: str | None = None
        self._catalog_version: int | None = None

    async def tools_description(self) -> str:
        """Tool catalog for the system prompt, rebuilt with the tool index."""
        index = await self._dispatcher.tool_index()
        version = self._dispatcher.index_version
        if self._tools_description is not None and version == self._catalog_version:
            return self._tools_description

        catalog: list[tuple[str, ToolDescriptor]] = []
        for server_name in self._registry.server_names():
            try:
                descriptors = await self._registry.list_tools(server_name)
            except ToolrelayError:
                continue
            for descriptor in descriptors:
                if index.get(descriptor.name) == server_name:
                    catalog.append((server_name, descriptor))
                else:
                    catalog.append(
                        (
                            server_name,
                            ToolDescriptor(
                                name=f"{server_name}:{descriptor.name}",
                                description=descriptor.description,
                                input_schema=descriptor.input_schema,
                            ),
                        )
                    )

        self._tools_description = format_tools_description(catalog)
        self._catalog_version = version
        self._logger.debug("tool_catalog_built", tools=len(catalog))
        return self._tools_description

    async def build_system_prompt(self, state: LoopState) -> str:
        """System prompt with tool catalog and extracted resources."""
        return build_loop_system_prompt(
            self._base_system_prompt,
            tools_description=await self.tools_description(),
            resources=format_resources(state.resources),
        )

    async def build_messages(self, state: LoopState) -> list[dict[str, Any]]:
        """Assemble the prompt window for the next model call."""
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": await self.build_system_prompt(state)}
        ]
        if state.summary:
            messages.append(
                {
                    "role": "user",
                    "content": SUMMARY_TURN_TEMPLATE.format(summary=state.summary),
                }
            )

        for message in state.window():
            converted = to_provider_message(message)
            if converted is not None:
                messages.append(converted)
        return messages


def to_provider_message(message: Message) -> dict[str, Any] | None:
    """Convert a stored turn to a provider chat message.

    System turns stored in the conversation are skipped; the loop always
    sends its own system prompt.
    """
    if message.role == MessageRole.SYSTEM:
        return None
    if message.role == MessageRole.USER:
        return {"role": "user", "content": message.content}
    if message.role == MessageRole.ASSISTANT:
        if not message.tool_calls:
            return {"role": "assistant", "content": message.content}
        payload: dict[str, Any] = {
            "toolCalls": [call.to_dict() for call in message.tool_calls],
        }
        if message.content:
            payload["content"] = message.content
        payload["needsMoreWork"] = True
        return {"role": "assistant", "content": json.dumps(payload, ensure_ascii=False)}
    return {"role": "user", "content": format_tool_results(list(message.tool_results))}


def format_tool_results(results: list[ToolCallResult]) -> str:
    """Render a result batch as text the model can read."""
    lines = ["Tool results:"]
    for result in results:
        if result.success:
            lines.append(f"[{result.tool_name}] {result.content}")
        else:
            lines.append(
                f"[{result.tool_name}] ERROR ({result.error_type}): {result.error or result.content}"
            )
    return "\n".join(lines)
