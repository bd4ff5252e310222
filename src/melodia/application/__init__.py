"""Application layer - use cases sitting between the API and the repositories."""
