"""
Query Engine Models

Pydantic models flowing through the engine: request context, generated and
sanitized SQL, execution results, analysis output, and stream events.

Untrusted model output (RawGenerationText) and validated SQL (SanitizedSQL)
are distinct types; only the validator module builds SanitizedSQL and the
executor refuses anything else.
"""

import re
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")


class ConversationTurn(BaseModel):
    """Single prior turn supplied by the client."""

    role: Literal["user", "assistant"]
    content: str

    model_config = ConfigDict(frozen=True)


class TenantContext(BaseModel):
    """Caller's tenant. Mandatory on every request, never defaulted."""

    tenant_id: str = Field(..., min_length=1, description="Opaque tenant (school) identifier")

    model_config = ConfigDict(frozen=True)

    @field_validator("tenant_id")
    @classmethod
    def validate_tenant_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tenant_id must not be blank")
        if not TENANT_ID_PATTERN.match(v):
            raise ValueError("tenant_id contains unsupported characters")
        return v


class RawGenerationText(BaseModel):
    """Verbatim generation backend output. Untrusted."""

    text: str
    provider: str

    model_config = ConfigDict(frozen=True)


class SanitizedSQL(BaseModel):
    """A statement that passed the SQL validator (or a compiled fallback template)."""

    sql: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.sql


class GeneratedQuery(BaseModel):
    """Output of one generation step, consumed once by the executor."""

    raw_text: str
    sanitized_sql: SanitizedSQL
    description: str
    source: Literal["llm", "pattern"] = "llm"

    model_config = ConfigDict(frozen=True)

    @property
    def sql(self) -> str:
        return self.sanitized_sql.sql


class DeliveryStrategy(StrEnum):
    """How a result set is shipped in the data event."""

    INLINE = "inline"
    REFERENCE = "reference"


class ExecutionResult(BaseModel):
    """Rows returned by one executed statement."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(..., ge=0)
    sql: str
    columns: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0


class AnalysisResult(BaseModel):
    """Heuristic view over an execution result. Never stored."""

    narrative: str | None = None
    insights: dict[str, Any] = Field(default_factory=dict)

    @property
    def matched(self) -> bool:
        return self.narrative is not None


class EventKind(StrEnum):
    THINKING = "thinking"
    SQL = "sql"
    DATA = "data"
    TOKEN = "token"
    ERROR = "error"
    DONE = "done"


class DoneType(StrEnum):
    DATA_QUERY = "data_query"
    CONVERSATION = "conversation"
    ERROR = "error"


class StreamEvent(BaseModel):
    """Wire unit of the stream orchestrator."""

    event: EventKind
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def thinking(cls, message: str) -> "StreamEvent":
        return cls(event=EventKind.THINKING, data={"message": message})

    @classmethod
    def sql(cls, sql: str) -> "StreamEvent":
        return cls(event=EventKind.SQL, data={"sql": sql})

    @classmethod
    def token(cls, token: str) -> "StreamEvent":
        return cls(event=EventKind.TOKEN, data={"token": token})

    @classmethod
    def error(cls, message: str, code: str | None = None) -> "StreamEvent":
        data: dict[str, Any] = {"message": message}
        if code:
            data["code"] = code
        return cls(event=EventKind.ERROR, data=data)

    @classmethod
    def done(cls, done_type: DoneType) -> "StreamEvent":
        return cls(event=EventKind.DONE, data={"type": done_type.value})
