"""Components used by the agent loop controller."""
