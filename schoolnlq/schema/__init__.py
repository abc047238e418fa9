"""
Schema Module

Static schema description and the TTL cache of live example values that
ground every prompt.
"""

from schoolnlq.schema.context import (
    QueryTemplate,
    SchemaContext,
    SchemaLoadError,
    TableSchema,
    get_schema_context,
    load_schema_context,
)
from schoolnlq.schema.examples import (
    ATTENDANCE_STATUSES,
    ExampleQuery,
    ExampleSnapshot,
    ExampleValueCache,
)

__all__ = [
    "SchemaContext",
    "TableSchema",
    "QueryTemplate",
    "SchemaLoadError",
    "load_schema_context",
    "get_schema_context",
    "ExampleValueCache",
    "ExampleSnapshot",
    "ExampleQuery",
    "ATTENDANCE_STATUSES",
]
