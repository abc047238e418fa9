"""
Database Connectors Module

Read-only async connector for the school ERP store.

Usage:
    from schoolnlq.connectors import PostgresConnector

    async with PostgresConnector(url="postgresql://app@localhost/school_erp") as connector:
        result = await connector.execute("SELECT name FROM classes ORDER BY name")
"""

from schoolnlq.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
)
from schoolnlq.connectors.postgres import PostgresConnector, json_safe

__all__ = [
    "BaseConnector",
    "PostgresConnector",
    "QueryResult",
    "ConnectorError",
    "ConnectionError",
    "QueryError",
    "json_safe",
]
