"""Domain layer: exceptions, value objects and in-memory entities."""
