"""HTTP surface of the query engine (FastAPI)."""
