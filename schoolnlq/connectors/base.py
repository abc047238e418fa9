"""
Base Database Connector

Abstract base class for the store connector. The engine only ever reads from
the school ERP database, so the interface is limited to:

- connect(): Establish connection pool
- execute(): Run a single read-only statement with a timeout
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class QueryResult(BaseModel):
    """Result from query execution."""

    rows: list[dict[str, Any]] = Field(..., description="Query result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Query execution time in ms")


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for read-only store connectors.

    Usage:
        connector = PostgresConnector(url="postgresql://app@localhost/school_erp")
        async with connector:
            result = await connector.execute("SELECT name FROM classes ORDER BY name")
            print(f"Found {result.row_count} rows")
    """

    def __init__(self, url: str, pool_size: int = 5, timeout: int = 30, **kwargs):
        """
        Initialize connector.

        Args:
            url: Database connection URL
            pool_size: Connection pool size (default: 5)
            timeout: Statement timeout in seconds (default: 30)
            **kwargs: Additional driver-specific parameters
        """
        self.url = url
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {self.safe_url}")

    @property
    def safe_url(self) -> str:
        """Connection URL without credentials, for logs."""
        parsed = urlparse(self.url)
        host = parsed.hostname or ""
        port = f":{parsed.port}" if parsed.port else ""
        return f"{parsed.scheme}://{host}{port}{parsed.path}"

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection and create connection pool.

        Idempotent; calling it twice keeps a single pool.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(self, query: str, timeout: int | None = None) -> QueryResult:
        """
        Execute one read-only SQL statement.

        Args:
            query: SQL query string
            timeout: Statement timeout in seconds (overrides default)

        Returns:
            QueryResult with rows, columns, and metadata

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close database connection and clean up pool.

        Safe to call multiple times.
        """
        pass

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.safe_url} ({status})>"
