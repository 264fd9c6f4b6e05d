"""Storage backends for the lifecycle core."""
