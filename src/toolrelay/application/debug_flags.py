"""
Debug Flags

Resolves which debug areas are on from CLI options and the environment:

- ``DEBUG``: ``*`` or ``all`` enables everything, otherwise a list of area
  names separated by commas, colons or whitespace (``llm,tools``)
- ``DEBUG_LLM`` / ``DEBUG_TOOLS``: truthy values ``1``, ``true``, ``yes``, ``on``
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})


def str_to_bool(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in TRUTHY_VALUES


@dataclass(frozen=True)
class DebugFlags:
    """Enabled debug areas."""

    llm: bool = False
    tools: bool = False
    all: bool = False

    @property
    def any(self) -> bool:
        return self.all or self.llm or self.tools

    @property
    def log_level(self) -> int:
        """Log level for the structlog filtering logger."""
        return logging.DEBUG if self.any else logging.WARNING

    def enabled_areas(self) -> list[str]:
        areas = []
        if self.llm:
            areas.append("llm")
        if self.tools:
            areas.append("tools")
        return areas

    @classmethod
    def resolve(
        cls,
        *,
        debug: bool = False,
        debug_llm: bool = False,
        debug_tools: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> DebugFlags:
        """Combine CLI switches with ``DEBUG``, ``DEBUG_LLM`` and ``DEBUG_TOOLS``."""
        env = os.environ if env is None else env
        env_debug = (env.get("DEBUG") or "").strip().lower()
        env_parts = [part for part in re.split(r"[,:\s]+", env_debug) if part]
        env_all = env_debug == "*" or "all" in env_parts

        all_enabled = debug or env_all
        return cls(
            llm=all_enabled
            or debug_llm
            or str_to_bool(env.get("DEBUG_LLM"))
            or "llm" in env_parts,
            tools=all_enabled
            or debug_tools
            or str_to_bool(env.get("DEBUG_TOOLS"))
            or "tools" in env_parts,
            all=all_enabled,
        )
