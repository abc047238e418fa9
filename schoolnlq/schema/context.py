"""
Schema Context Provider

Loads the school ERP schema description (tables, columns, relationships and
sample query templates) from ``school_schema.yaml`` and serializes it into the
stable text block embedded in every prompt.

The context is loaded once per process and never mutated.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "school_schema.yaml"


class SchemaLoadError(Exception):
    """Raised when the schema description file is missing or malformed."""


@dataclass(frozen=True)
class TableSchema:
    """Semantic description of one table."""

    name: str
    description: str
    columns: Mapping[str, str]
    relationships: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "columns": dict(self.columns),
            "relationships": list(self.relationships),
        }


@dataclass(frozen=True)
class QueryTemplate:
    """Sample query shown to the generator as a reference."""

    name: str
    sql: str
    description: str


@dataclass(frozen=True)
class SchemaContext:
    """Immutable schema description consumed by the prompt builder."""

    version: str
    description: str
    tables: Mapping[str, TableSchema]
    common_queries: tuple[QueryTemplate, ...] = field(default_factory=tuple)

    @property
    def table_names(self) -> list[str]:
        return list(self.tables)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "description": self.description,
            "tables": {name: table.to_dict() for name, table in self.tables.items()},
            "commonQueries": {
                query.name: {"sql": query.sql, "description": query.description}
                for query in self.common_queries
            },
        }

    def to_prompt_text(self) -> str:
        """Serialize to pretty JSON; key order follows the schema file."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchemaContext:
        tables_raw = raw.get("tables")
        if not isinstance(tables_raw, dict) or not tables_raw:
            raise SchemaLoadError("Schema file must define at least one table")

        tables: dict[str, TableSchema] = {}
        for name, table in tables_raw.items():
            if not isinstance(table, dict) or not isinstance(table.get("columns"), dict):
                raise SchemaLoadError(f"Table '{name}' must define a columns mapping")
            tables[name] = TableSchema(
                name=name,
                description=str(table.get("description", "")),
                columns=MappingProxyType(
                    {str(col): str(desc) for col, desc in table["columns"].items()}
                ),
                relationships=tuple(str(rel) for rel in table.get("relationships") or ()),
            )

        queries = tuple(
            QueryTemplate(
                name=name,
                sql=str(entry.get("sql", "")).strip(),
                description=str(entry.get("description", "")),
            )
            for name, entry in (raw.get("common_queries") or {}).items()
        )

        return cls(
            version=str(raw.get("version", "unversioned")),
            description=str(raw.get("description", "")).strip(),
            tables=MappingProxyType(tables),
            common_queries=queries,
        )


def load_schema_context(path: str | Path | None = None) -> SchemaContext:
    """
    Load a schema description file.

    Args:
        path: YAML file (default: the bundled school schema)

    Raises:
        SchemaLoadError: If the file is missing or malformed
    """
    schema_path = Path(path) if path else SCHEMA_PATH
    try:
        raw = yaml.safe_load(schema_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SchemaLoadError(f"Schema file not found: {schema_path}") from e
    except yaml.YAMLError as e:
        raise SchemaLoadError(f"Invalid schema file {schema_path}: {e}") from e

    if not isinstance(raw, dict):
        raise SchemaLoadError(f"Schema file {schema_path} must contain a mapping")

    context = SchemaContext.from_dict(raw)
    logger.info(
        f"Loaded schema context v{context.version} with {len(context.tables)} tables",
        extra={"schema_version": context.version, "tables": len(context.tables)},
    )
    return context


@lru_cache
def get_schema_context() -> SchemaContext:
    """Process-wide schema context for the bundled schema file."""
    return load_schema_context()
