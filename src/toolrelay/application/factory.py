"""Application Layer - Engine Factory.

Wires the agent loop with infrastructure adapters built from
``EngineConfigSchema``: the LiteLLM provider, the MCP server registry and the
file conversation store.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from toolrelay.application.config import EngineConfigSchema
from toolrelay.core.domain.agent_loop import AgentLoop
from toolrelay.core.domain.enums import ServerTransport
from toolrelay.core.interfaces.conversation import ConversationStoreProtocol
from toolrelay.core.interfaces.llm import LLMProviderProtocol
from toolrelay.core.interfaces.tools import ToolServerRegistryProtocol
from toolrelay.infrastructure.llm.litellm_provider import LiteLLMProvider
from toolrelay.infrastructure.llm.structured_output import StructuredOutputPolicy
from toolrelay.infrastructure.persistence.file_conversation_store import FileConversationStore
from toolrelay.infrastructure.tools.mcp.registry import MCPServerConfig, MCPServerRegistry

logger = structlog.get_logger(__name__)


@dataclass
class Engine:
    """A wired agent loop plus the adapters it runs on."""

    config: EngineConfigSchema
    loop: AgentLoop
    llm_provider: LLMProviderProtocol
    registry: ToolServerRegistryProtocol
    store: ConversationStoreProtocol


def build_llm_provider(config: EngineConfigSchema) -> LiteLLMProvider:
    llm = config.llm
    return LiteLLMProvider(
        default_model=llm.default_model,
        models=llm.models,
        timeout=llm.timeout,
        structured_output_supported=StructuredOutputPolicy(llm.structured_output_denylist),
        tracing_config=llm.tracing.model_dump(),
    )


def build_store(config: EngineConfigSchema) -> FileConversationStore:
    return FileConversationStore(work_dir=Path(config.storage.work_dir))


def build_mcp_registry(config: EngineConfigSchema) -> MCPServerRegistry:
    return MCPServerRegistry(
        [
            MCPServerConfig(
                name=name,
                transport=ServerTransport(server.type),
                command=server.command,
                args=list(server.args),
                env=dict(server.env),
                url=server.url,
            )
            for name, server in config.mcp_servers.items()
        ]
    )


def build_agent_loop(
    config: EngineConfigSchema,
    *,
    llm_provider: LLMProviderProtocol,
    registry: ToolServerRegistryProtocol,
    store: ConversationStoreProtocol,
) -> AgentLoop:
    loop_config = config.loop
    return AgentLoop(
        llm_provider=llm_provider,
        registry=registry,
        store=store,
        system_prompt=loop_config.system_prompt,
        compression_threshold=loop_config.compression_threshold,
        keep_recent_messages=loop_config.keep_recent_messages,
        default_budget=loop_config.to_budget(),
    )


@asynccontextmanager
async def create_engine(
    config: EngineConfigSchema,
    *,
    llm_provider: LLMProviderProtocol | None = None,
    registry: ToolServerRegistryProtocol | None = None,
    store: ConversationStoreProtocol | None = None,
) -> AsyncIterator[Engine]:
    """
    Build an engine and keep its tool server connections open while in use.

    Any adapter can be passed in to replace the configured one. MCP
    connections are only opened (and closed) when no registry is injected.
    """
    provider = llm_provider or build_llm_provider(config)
    conversation_store = store or build_store(config)

    if registry is not None:
        yield _assemble(config, provider, registry, conversation_store)
        return

    async with build_mcp_registry(config) as mcp_registry:
        logger.info("engine_ready", servers=mcp_registry.server_names())
        yield _assemble(config, provider, mcp_registry, conversation_store)


def _assemble(
    config: EngineConfigSchema,
    provider: LLMProviderProtocol,
    registry: ToolServerRegistryProtocol,
    store: ConversationStoreProtocol,
) -> Engine:
    return Engine(
        config=config,
        loop=build_agent_loop(config, llm_provider=provider, registry=registry, store=store),
        llm_provider=provider,
        registry=registry,
        store=store,
    )
