"""
Example-Value Cache

Samples representative live values (class names, fee types, exam types,
academic years) from the store so the generator uses the school's real
vocabulary. Values are held with a capture timestamp and refreshed once they
are older than the TTL.

The cache is one explicit object shared by the process and injected into the
prompt builder. Refreshes are serialized by an asyncio lock; readers that find
a refresh already running get the previous snapshot instead of waiting.
Personal records (student names, admission numbers) are never sampled since
the cache is shared across tenants.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from schoolnlq.connectors.base import BaseConnector, ConnectorError

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ["present", "absent", "late", "excused"]


@dataclass(frozen=True)
class ExampleQuery:
    """One sampling query. ``column`` flattens single-column results to a list."""

    category: str
    sql: str
    column: str | None = None


DEFAULT_QUERIES: tuple[ExampleQuery, ...] = (
    ExampleQuery(
        "classes",
        "SELECT DISTINCT name, level FROM classes WHERE is_active = true "
        "ORDER BY level, name LIMIT 10",
    ),
    ExampleQuery(
        "feeTypes",
        "SELECT DISTINCT fee_type FROM fees ORDER BY fee_type LIMIT 10",
        column="fee_type",
    ),
    ExampleQuery(
        "examTypes",
        "SELECT DISTINCT exam_type, name FROM exams ORDER BY exam_type, name LIMIT 10",
    ),
    ExampleQuery(
        "academicYears",
        "SELECT DISTINCT academic_year FROM students ORDER BY academic_year DESC LIMIT 5",
        column="academic_year",
    ),
)


@dataclass(frozen=True)
class ExampleSnapshot:
    """Example values and the monotonic time they were captured."""

    values: dict[str, Any] = field(default_factory=dict)
    captured_at: float | None = None


class ExampleValueCache:
    """
    TTL cache of sampled example values.

    Args:
        connector: Store connector, or None to serve static values only
        ttl_seconds: Snapshot lifetime (default 300)
        queries: Sampling queries
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        connector: BaseConnector | None,
        ttl_seconds: float = 300,
        queries: tuple[ExampleQuery, ...] = DEFAULT_QUERIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.connector = connector
        self.ttl_seconds = ttl_seconds
        self.queries = queries
        self._clock = clock
        self._snapshot = ExampleSnapshot()
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def snapshot(self) -> ExampleSnapshot:
        return self._snapshot

    def is_stale(self) -> bool:
        captured_at = self._snapshot.captured_at
        return captured_at is None or self._clock() - captured_at > self.ttl_seconds

    def invalidate(self) -> None:
        """Force the next read to refresh."""
        self._snapshot = ExampleSnapshot(values=self._snapshot.values, captured_at=None)

    async def get(self) -> dict[str, Any]:
        """Return current example values, refreshing first when stale."""
        if not self.is_stale():
            return self._snapshot.values

        if self._lock.locked() and self._snapshot.values:
            logger.debug("Example refresh in progress, serving previous snapshot")
            return self._snapshot.values

        async with self._lock:
            # Another request may have refreshed while this one waited.
            if self.is_stale():
                await self.refresh()
        return self._snapshot.values

    async def refresh(self) -> ExampleSnapshot:
        """
        Sample values from the store.

        On store failure the last-known values are kept and retried after
        another TTL period.
        """
        self.refresh_count += 1
        now = self._clock()

        if self.connector is None:
            self._snapshot = ExampleSnapshot(
                values={"attendanceStatuses": list(ATTENDANCE_STATUSES)}, captured_at=now
            )
            return self._snapshot

        try:
            values: dict[str, Any] = {}
            for query in self.queries:
                result = await self.connector.execute(query.sql)
                if query.column:
                    values[query.category] = [
                        row[query.column]
                        for row in result.rows
                        if row.get(query.column) is not None
                    ]
                else:
                    values[query.category] = result.rows
            values["attendanceStatuses"] = list(ATTENDANCE_STATUSES)
        except ConnectorError as e:
            logger.warning(
                f"Example value refresh failed, keeping last-known values: {e}",
                extra={"categories": list(self._snapshot.values)},
            )
            fallback = self._snapshot.values or {"attendanceStatuses": list(ATTENDANCE_STATUSES)}
            self._snapshot = ExampleSnapshot(values=fallback, captured_at=now)
            return self._snapshot

        self._snapshot = ExampleSnapshot(values=values, captured_at=now)
        logger.info(
            f"Refreshed example values for {len(values)} categories",
            extra={"categories": list(values)},
        )
        return self._snapshot
