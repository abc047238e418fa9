"""
Query Executor

Runs SanitizedSQL against the store and decides the delivery strategy for
the result set:

- row_count <= inline_row_limit: rows travel inline in the data event
- row_count > inline_row_limit: only the SQL and count travel; the client
  re-fetches the rows through /execute-sql

Store failures surface as SQLExecutionError; they are non-fatal to the
process.
"""

import logging
from typing import Any

from schoolnlq.connectors.base import BaseConnector, ConnectorError
from schoolnlq.errors import SQLExecutionError
from schoolnlq.models.query import DeliveryStrategy, ExecutionResult, SanitizedSQL

logger = logging.getLogger(__name__)

DEFAULT_INLINE_ROW_LIMIT = 100


class QueryExecutor:
    """
    Executes validated statements through a read-only connector.

    Args:
        connector: Store connector (None when no database is configured)
        inline_row_limit: Largest result set shipped inline
        statement_timeout: Per-statement timeout in seconds (connector default if None)
    """

    def __init__(
        self,
        connector: BaseConnector | None,
        inline_row_limit: int = DEFAULT_INLINE_ROW_LIMIT,
        statement_timeout: int | None = None,
    ):
        self.connector = connector
        self.inline_row_limit = inline_row_limit
        self.statement_timeout = statement_timeout

    async def execute(self, sql: SanitizedSQL) -> ExecutionResult:
        """
        Execute a validated statement.

        Raises:
            TypeError: If given anything other than SanitizedSQL
            SQLExecutionError: If the store fails or is not configured
        """
        if not isinstance(sql, SanitizedSQL):
            raise TypeError(
                f"QueryExecutor only runs SanitizedSQL, got {type(sql).__name__}"
            )

        if self.connector is None:
            raise SQLExecutionError("Database is not configured (set DATABASE_URL)")

        try:
            result = await self.connector.execute(sql.sql, timeout=self.statement_timeout)
        except ConnectorError as e:
            logger.error(f"Query execution failed: {e}", extra={"sql": sql.sql[:200]})
            raise SQLExecutionError(str(e) or "Database error", {"sql": sql.sql}) from e

        logger.info(
            f"Query returned {result.row_count} rows in {result.execution_time_ms:.1f}ms",
            extra={"row_count": result.row_count, "strategy": self.strategy_for(result.row_count)},
        )

        return ExecutionResult(
            rows=result.rows,
            row_count=result.row_count,
            sql=sql.sql,
            columns=result.columns,
            execution_time_ms=result.execution_time_ms,
        )

    def strategy_for(self, row_count: int) -> DeliveryStrategy:
        if row_count > self.inline_row_limit:
            return DeliveryStrategy.REFERENCE
        return DeliveryStrategy.INLINE

    def data_payload(self, result: ExecutionResult) -> dict[str, Any]:
        """Payload of the data event for this result."""
        if self.strategy_for(result.row_count) is DeliveryStrategy.REFERENCE:
            return {"sql": result.sql, "count": result.row_count, "fetchViaApi": True}
        return {"data": result.rows, "count": result.row_count}
