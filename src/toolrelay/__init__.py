"""toolrelay: agent orchestration engine for LLM-driven tool calling."""

__version__ = "0.1.0"
