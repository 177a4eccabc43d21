"""Application layer: configuration, wiring and debug settings."""
