"""HTTP API: FastAPI routers and their dependencies."""
