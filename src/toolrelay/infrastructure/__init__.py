"""Infrastructure adapters: LLM provider, tool servers, persistence, auth."""
