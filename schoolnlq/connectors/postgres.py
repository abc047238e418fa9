"""
PostgreSQL Connector

Async PostgreSQL connector using asyncpg.

Every statement runs inside a read-only transaction with a local statement
timeout, and row values are coerced to JSON-serializable types before they
leave the connector.
"""

import logging
import time
import uuid
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any

import asyncpg

from schoolnlq.connectors.base import (
    BaseConnector,
    ConnectionError,
    QueryError,
    QueryResult,
)

logger = logging.getLogger(__name__)


def json_safe(value: Any) -> Any:
    """Coerce database types into JSON-serializable values."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime, dt_time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, list):
        return [json_safe(item) for item in value]
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    return value


class PostgresConnector(BaseConnector):
    """
    PostgreSQL database connector using asyncpg.

    Provides a pooled, read-only execution path for validated statements.
    """

    async def connect(self) -> None:
        """
        Create the asyncpg connection pool and verify connectivity.

        Raises:
            ConnectionError: If connection fails
        """
        if self._connected and self._pool:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to PostgreSQL at {self.safe_url}")

            self._pool = await asyncpg.create_pool(
                dsn=self.url,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=self.timeout,
                **self.kwargs,
            )

            async with self._pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.info(f"Connected to PostgreSQL: {version.split(',')[0]}")

            self._connected = True

        except asyncpg.PostgresError as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
        except OSError as e:
            logger.error(f"PostgreSQL unreachable: {e}")
            raise ConnectionError(f"Connection error: {e}") from e

    async def execute(self, query: str, timeout: int | None = None) -> QueryResult:
        """
        Execute a statement inside a read-only transaction.

        Raises:
            QueryError: If the store rejects or times out the statement
            ConnectionError: If not connected
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction(readonly=True):
                    await conn.execute(f"SET LOCAL statement_timeout = {int(query_timeout * 1000)}")
                    rows = await conn.fetch(query)

            result_rows = [{key: json_safe(value) for key, value in row.items()} for row in rows]
            columns = list(rows[0].keys()) if rows else []
            execution_time_ms = (time.perf_counter() - start_time) * 1000

            logger.debug(
                f"Query executed in {execution_time_ms:.2f}ms, returned {len(result_rows)} rows"
            )

            return QueryResult(
                rows=result_rows,
                row_count=len(result_rows),
                columns=columns,
                execution_time_ms=execution_time_ms,
            )

        except asyncpg.QueryCanceledError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(str(e)) from e
        except (asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Connection problem during query execution: {e}")
            raise QueryError(f"Query error: {e}") from e

    async def close(self) -> None:
        """Close connection pool. Safe to call multiple times."""
        if not self._pool:
            logger.debug("No connection pool to close")
            return

        await self._pool.close()
        self._pool = None
        self._connected = False
        logger.info("PostgreSQL connection closed")
