"""Tool server registries."""
