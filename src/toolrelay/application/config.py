"""
Engine Configuration

Pydantic models for ``toolrelay.yaml`` and the loader that reads it. Errors
carry the file and field path so a bad config points at the exact line to
fix.

Example ``toolrelay.yaml``::

    llm:
      default_model: main
      models:
        main: gpt-4o-mini
    loop:
      max_iterations: 10
    mcp_servers:
      files:
        type: stdio
        command: npx
        args: ["-y", "@modelcontextprotocol/server-filesystem", "."]
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from toolrelay.core.domain.errors import ConfigError
from toolrelay.core.domain.models import LoopBudget

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_FILE = "toolrelay.yaml"
ENV_MODEL = "TOOLRELAY_MODEL"
ENV_WORK_DIR = "TOOLRELAY_WORK_DIR"


class TracingConfigSchema(BaseModel):
    """JSONL tracing of LLM interactions."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    path: str = Field("traces/llm_traces.jsonl", description="Trace file path")


class LLMConfigSchema(BaseModel):
    """Provider adapter settings."""

    model_config = ConfigDict(extra="forbid")

    default_model: str = Field("main", min_length=1, description="Model alias or model string")
    models: dict[str, str] = Field(
        default_factory=lambda: {"main": "gpt-4o-mini"},
        description="Alias to LiteLLM model string",
    )
    timeout: float = Field(60, gt=0, description="Per-request timeout in seconds")
    structured_output_denylist: list[str] = Field(
        default_factory=list,
        description="Model substrings that never get schema-constrained requests",
    )
    tracing: TracingConfigSchema = Field(default_factory=TracingConfigSchema)


class LoopConfigSchema(BaseModel):
    """Agent loop budgets and compression settings."""

    model_config = ConfigDict(extra="forbid")

    max_iterations: int = Field(10, ge=1)
    max_duration_seconds: float = Field(300, gt=0)
    tool_timeout_seconds: float = Field(30, gt=0)
    compression_threshold: int = Field(20, ge=2)
    keep_recent_messages: int = Field(6, ge=1)
    system_prompt: Optional[str] = Field(None, description="Replaces the default kernel prompt")

    @model_validator(mode="after")
    def validate_compression_window(self) -> "LoopConfigSchema":
        """Require keep_recent_messages below compression_threshold."""
        if self.keep_recent_messages >= self.compression_threshold:
            raise ValueError("keep_recent_messages must be smaller than compression_threshold")
        return self

    def to_budget(self) -> LoopBudget:
        return LoopBudget(
            max_iterations=self.max_iterations,
            max_duration_seconds=self.max_duration_seconds,
            tool_timeout_seconds=self.tool_timeout_seconds,
        )


class MCPServerConfigSchema(BaseModel):
    """Schema for MCP server configuration."""

    model_config = ConfigDict(extra="forbid")

    type: str = Field(
        "stdio",
        description="Server type: 'stdio' or 'sse'",
        pattern="^(stdio|sse)$",
    )
    command: Optional[str] = Field(None, description="For stdio: command to run (e.g., 'npx')")
    args: list[str] = Field(default_factory=list, description="For stdio: command arguments")
    url: Optional[str] = Field(None, description="For sse: server URL")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables")
    description: str = Field("", description="Human-readable description")

    @model_validator(mode="after")
    def validate_server_config(self) -> "MCPServerConfigSchema":
        """Validate that stdio has command and sse has url."""
        if self.type == "stdio" and not self.command:
            raise ValueError("stdio server requires 'command' field")
        if self.type == "sse" and not self.url:
            raise ValueError("sse server requires 'url' field")
        return self


class StorageConfigSchema(BaseModel):
    """Conversation storage settings."""

    model_config = ConfigDict(extra="forbid")

    work_dir: str = Field(".toolrelay", min_length=1)


class EngineConfigSchema(BaseModel):
    """Root of ``toolrelay.yaml``."""

    model_config = ConfigDict(extra="forbid")

    llm: LLMConfigSchema = Field(default_factory=LLMConfigSchema)
    loop: LoopConfigSchema = Field(default_factory=LoopConfigSchema)
    mcp_servers: dict[str, MCPServerConfigSchema] = Field(default_factory=dict)
    storage: StorageConfigSchema = Field(default_factory=StorageConfigSchema)


def validate_engine_config(
    data: dict[str, Any],
    file_path: Optional[Path] = None,
) -> EngineConfigSchema:
    """
    Validate configuration data.

    Raises:
        ConfigError: With ``details["file"]`` and ``details["field"]``.
    """
    try:
        return EngineConfigSchema(**data)
    except ValidationError as e:
        first = e.errors()[0]
        field_path = ".".join(str(part) for part in first.get("loc", ()))
        parts = []
        if file_path:
            parts.append(f"File: {file_path}")
        if field_path:
            parts.append(f"Field: {field_path}")
        parts.append(first.get("msg", str(e)))
        raise ConfigError(
            " | ".join(parts),
            details={
                "file": str(file_path) if file_path else None,
                "field": field_path or None,
                "error_count": e.error_count(),
            },
        ) from e


def load_engine_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> EngineConfigSchema:
    """
    Load ``toolrelay.yaml`` and apply environment overrides.

    Args:
        config_path: Explicit config file. When omitted, ``toolrelay.yaml``
            in the working directory is used if it exists, defaults otherwise.
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: If an explicit file is missing, the YAML is malformed,
            or validation fails.
    """
    env = os.environ if env is None else env
    path = Path(config_path) if config_path else Path(DEFAULT_CONFIG_FILE)

    data: dict[str, Any] = {}
    if path.exists():
        data = _read_yaml(path)
        logger.debug("config_loaded", path=str(path))
    elif config_path:
        raise ConfigError(
            f"Config file not found: {path}",
            details={"file": str(path), "field": None},
        )
    else:
        logger.debug("config_defaults_used", searched=str(path))

    config = validate_engine_config(data, file_path=path if path.exists() else None)
    return _apply_env_overrides(config, env)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"File: {path} | Invalid YAML: {e}",
            details={"file": str(path), "field": None},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"File: {path} | Top level must be a mapping",
            details={"file": str(path), "field": None},
        )
    return data


def _apply_env_overrides(
    config: EngineConfigSchema, env: Mapping[str, str]
) -> EngineConfigSchema:
    llm = config.llm
    storage = config.storage
    if env.get(ENV_MODEL):
        llm = llm.model_copy(update={"default_model": env[ENV_MODEL]})
    if env.get(ENV_WORK_DIR):
        storage = storage.model_copy(update={"work_dir": env[ENV_WORK_DIR]})
    return config.model_copy(update={"llm": llm, "storage": storage})
