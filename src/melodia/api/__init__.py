"""HTTP API layer: routers, schemas, dependencies and exception handlers."""
