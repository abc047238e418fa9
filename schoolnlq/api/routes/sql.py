"""
SQL Routes

Re-fetch endpoint for result sets that were too large to ship inline in the
stream's data event.
"""

import logging

from fastapi import APIRouter, Depends

from schoolnlq.api.dependencies import get_engine
from schoolnlq.models.api import ExecuteSQLRequest, ExecuteSQLResponse
from schoolnlq.pipeline.orchestrator import QueryEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/execute-sql", response_model=ExecuteSQLResponse)
async def execute_sql(
    sql_request: ExecuteSQLRequest,
    engine: QueryEngine = Depends(get_engine),
) -> ExecuteSQLResponse:
    """
    Run a previously issued SELECT and return every row.

    The statement goes through the full lexical validation again. It must
    already be tenant-scoped: a leftover placeholder is rejected.
    """
    logger.info(f"Execute SQL request received: {sql_request.sql[:100]}")
    result = await engine.execute_sql(sql_request.sql)
    return ExecuteSQLResponse(data=result.rows, count=result.row_count)
