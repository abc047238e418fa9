"""
School NLQ Models Module

Pydantic models for type-safe data validation throughout the engine.

Available Models:
    Query Models:
        - ConversationTurn: Prior user/assistant turn
        - TenantContext: Mandatory tenant identifier
        - RawGenerationText: Untrusted generation output
        - SanitizedSQL: Validated, tenant-scoped SELECT
        - GeneratedQuery: Generation step output
        - ExecutionResult: Rows from one executed statement
        - AnalysisResult: Heuristic narrative and insights
        - StreamEvent: Wire unit of the stream orchestrator

    API Models:
        - ChatRequest / ChatResponse
        - ExecuteSQLRequest / ExecuteSQLResponse
        - GenerateSQLRequest / GenerateSQLResponse
        - HealthResponse / ErrorResponse
"""

from schoolnlq.models.api import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    ExecuteSQLRequest,
    ExecuteSQLResponse,
    GenerateSQLRequest,
    GenerateSQLResponse,
    HealthResponse,
    RequestContext,
)
from schoolnlq.models.query import (
    AnalysisResult,
    ConversationTurn,
    DeliveryStrategy,
    DoneType,
    EventKind,
    ExecutionResult,
    GeneratedQuery,
    RawGenerationText,
    SanitizedSQL,
    StreamEvent,
    TenantContext,
)

__all__ = [
    # Query models
    "AnalysisResult",
    "ConversationTurn",
    "DeliveryStrategy",
    "DoneType",
    "EventKind",
    "ExecutionResult",
    "GeneratedQuery",
    "RawGenerationText",
    "SanitizedSQL",
    "StreamEvent",
    "TenantContext",
    # API models
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "ExecuteSQLRequest",
    "ExecuteSQLResponse",
    "GenerateSQLRequest",
    "GenerateSQLResponse",
    "HealthResponse",
    "RequestContext",
]
