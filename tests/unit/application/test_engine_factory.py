"""Tests for engine wiring."""

import pytest

from conftest import ScriptedLLMProvider, reply
from toolrelay.application.config import validate_engine_config
from toolrelay.application.factory import (
    build_llm_provider,
    build_mcp_registry,
    build_store,
    create_engine,
)
from toolrelay.infrastructure.llm.litellm_provider import LiteLLMProvider
from toolrelay.infrastructure.persistence.file_conversation_store import FileConversationStore


class TestBuilders:
    def test_llm_provider_from_config(self) -> None:
        config = validate_engine_config(
            {
                "llm": {
                    "default_model": "fast",
                    "models": {"fast": "ollama/llama3"},
                    "timeout": 15,
                    "structured_output_denylist": ["ollama/"],
                }
            }
        )

        provider = build_llm_provider(config)

        assert isinstance(provider, LiteLLMProvider)
        assert provider._resolve_model() == "ollama/llama3"
        assert provider.timeout == 15
        assert provider._structured_output_supported("ollama/llama3") is False

    def test_store_uses_work_dir(self, tmp_path) -> None:
        config = validate_engine_config({"storage": {"work_dir": str(tmp_path / "data")}})

        store = build_store(config)

        assert isinstance(store, FileConversationStore)
        assert (tmp_path / "data" / "conversations").is_dir()

    def test_mcp_registry_from_config(self) -> None:
        config = validate_engine_config(
            {
                "mcp_servers": {
                    "files": {"command": "npx", "args": ["server"]},
                    "remote": {"type": "sse", "url": "http://localhost:8000/sse"},
                }
            }
        )

        registry = build_mcp_registry(config)

        configs = {c.name: c for c in registry._configs}
        assert configs["files"].command == "npx"
        assert configs["remote"].transport.value == "sse"


class TestCreateEngine:
    @pytest.mark.asyncio
    async def test_runs_with_injected_adapters(self, registry, store) -> None:
        config = validate_engine_config({"loop": {"max_iterations": 3}})
        provider = ScriptedLLMProvider(
            [reply(tool_calls=[("search", {"query": "x"})]), reply(content="done")]
        )

        async with create_engine(
            config, llm_provider=provider, registry=registry, store=store
        ) as engine:
            result = await engine.loop.run("c1", "go")

        assert engine.registry is registry
        assert engine.store is store
        assert result.final_content == "done"
        assert result.tool_calls_executed == 1

    @pytest.mark.asyncio
    async def test_without_servers_builds_empty_registry(self, store) -> None:
        config = validate_engine_config({})
        provider = ScriptedLLMProvider([reply(content="no tools needed")])

        async with create_engine(config, llm_provider=provider, store=store) as engine:
            assert engine.registry.server_names() == []
            result = await engine.loop.run("c1", "hi")

        assert result.final_content == "no tools needed"
