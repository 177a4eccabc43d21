"""Core domain, protocols and prompts. No infrastructure dependencies."""
