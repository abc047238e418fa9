"""
Route dependencies.

Resolves the process-wide engine from app state and turns request context
into a validated TenantContext.
"""

import logging

from fastapi import HTTPException, status
from pydantic import ValidationError

from schoolnlq.models.api import RequestContext
from schoolnlq.models.query import TenantContext
from schoolnlq.pipeline.orchestrator import QueryEngine

logger = logging.getLogger(__name__)


def get_engine() -> QueryEngine:
    """Get the initialized engine, or 503 while it is missing."""
    from schoolnlq.api.main import app_state

    engine = app_state.get("engine")
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Query engine not initialized",
        )
    return engine


def resolve_tenant(context: RequestContext) -> TenantContext:
    """Validate the caller's tenant id. Never defaulted."""
    try:
        return context.to_tenant()
    except ValidationError as e:
        logger.warning(f"Rejected request with invalid tenant context: {e.errors()[0]['msg']}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid tenant context",
        ) from e
