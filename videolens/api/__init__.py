"""HTTP surface: FastAPI routes and dependencies."""
