"""
API Request/Response Models

Pydantic models for FastAPI endpoints. Field names follow the wire format the
React client already speaks (camelCase where the client sends camelCase).
"""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from schoolnlq.models.query import ConversationTurn, TenantContext


class RequestContext(BaseModel):
    """Caller context forwarded by the front controller after authentication."""

    tenant_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("tenant_id", "school_id"),
        description="Opaque tenant identifier (school id)",
    )

    model_config = ConfigDict(extra="allow")

    def to_tenant(self) -> TenantContext:
        return TenantContext(tenant_id=self.tenant_id)


class ChatRequest(BaseModel):
    """Request model for /chat and /chat/stream."""

    message: str = Field(..., min_length=1, description="User's natural language question")
    context: RequestContext = Field(..., description="Tenant context (mandatory)")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conversationHistory", "conversation_history"),
        description="Previous turns of the conversation",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Which students in Class XII are absent today?",
                "context": {"tenant_id": "3a1f2d3e-4b5c-6d7e-8f90-1234567890ab"},
                "conversationHistory": [],
            }
        }
    }


class ChatResponse(BaseModel):
    """Response model for the batch /chat endpoint."""

    response: str = Field(..., description="Natural language answer")
    type: Literal["data_query", "conversation", "error"] = Field(
        ..., description="Which path handled the message"
    )
    data: list[dict[str, Any]] | None = Field(None, description="Result rows")
    count: int | None = Field(None, description="Number of result rows")
    sql: str | None = Field(None, description="Executed SQL")


class ExecuteSQLRequest(BaseModel):
    """Request model for /execute-sql."""

    sql: str = Field(..., min_length=1, description="SELECT statement to run")


class ExecuteSQLResponse(BaseModel):
    """Response model for /execute-sql."""

    data: list[dict[str, Any]] = Field(..., description="Result rows")
    count: int = Field(..., description="Number of result rows")


class GenerateSQLRequest(BaseModel):
    """Request model for /generate-sql."""

    query: str = Field(..., min_length=1, description="Natural language question")
    context: RequestContext = Field(..., description="Tenant context (mandatory)")


class GenerateSQLResponse(BaseModel):
    """Response model for /generate-sql."""

    sql: str
    description: str
    source: Literal["llm", "pattern"]


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status: 'ok' or 'degraded'")
    service: str = Field(default="ai", description="Service name")
    version: str = Field(..., description="API version")
    provider: str | None = Field(None, description="Active generation provider, if any")
    database: bool = Field(False, description="Whether the store connector is up")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(default_factory=dict, description="Component checks")


class ErrorResponse(BaseModel):
    """Error body returned by the exception handlers."""

    error: str
    message: str
