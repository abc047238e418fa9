"""
Health Check Routes

Liveness endpoint reporting which engine components are up.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status

from schoolnlq import __version__
from schoolnlq.models.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Always 200 while the process is alive. ``status`` is "degraded" when the
    engine runs without a database or without a generation backend.
    """
    from schoolnlq.api.main import app_state

    engine = app_state.get("engine")
    connector = app_state.get("connector")

    checks = {
        "engine": engine is not None,
        "database": connector is not None and connector.is_connected,
        "llm": engine is not None and engine.backend is not None,
    }
    if not all(checks.values()):
        logger.debug(f"Health degraded: {checks}")

    return HealthResponse(
        status="ok" if all(checks.values()) else "degraded",
        version=__version__,
        provider=engine.backend.provider_name if checks["llm"] else None,
        database=checks["database"],
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
