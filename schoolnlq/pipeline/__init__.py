"""
Pipeline package for the query engine.

Contains the orchestrator that connects the engine components into the
streaming request flow, and the SSE framing used by the HTTP layer.
"""

from schoolnlq.pipeline.orchestrator import QueryEngine, create_engine
from schoolnlq.pipeline.sse import format_sse

__all__ = ["QueryEngine", "create_engine", "format_sse"]
