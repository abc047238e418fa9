"""
Chat Routes

FastAPI endpoints for the natural language chat interface:

- POST /chat: batch answer with every result row
- POST /chat/stream: Server-Sent Events (thinking, sql, data, token, error, done)
- POST /generate-sql: synthesize and validate SQL without executing it
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from schoolnlq.api.dependencies import get_engine, resolve_tenant
from schoolnlq.models.api import (
    ChatRequest,
    ChatResponse,
    GenerateSQLRequest,
    GenerateSQLResponse,
)
from schoolnlq.pipeline.orchestrator import QueryEngine
from schoolnlq.pipeline.sse import format_sse

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/chat", response_model=ChatResponse)
async def chat(
    chat_request: ChatRequest,
    engine: QueryEngine = Depends(get_engine),
) -> ChatResponse:
    """
    Process a natural language message and return the complete answer.

    Data answers carry every row regardless of size.
    """
    tenant = resolve_tenant(chat_request.context)
    logger.info(
        f"Chat request received: {chat_request.message[:100]}",
        extra={"tenant_id": tenant.tenant_id},
    )
    return await engine.chat(chat_request.message, tenant, chat_request.conversation_history)


@router.post("/chat/stream")
async def chat_stream(
    request: Request,
    chat_request: ChatRequest,
    engine: QueryEngine = Depends(get_engine),
) -> StreamingResponse:
    """
    Stream one request as Server-Sent Events.

    Writing stops as soon as the client disconnects; the stream always ends
    with a single ``done`` event otherwise.
    """
    tenant = resolve_tenant(chat_request.context)
    logger.info(
        f"Streaming chat request received: {chat_request.message[:100]}",
        extra={"tenant_id": tenant.tenant_id},
    )

    async def event_stream() -> AsyncIterator[str]:
        events = engine.stream(chat_request.message, tenant, chat_request.conversation_history)
        async with aclosing(events):
            async for event in events:
                if await request.is_disconnected():
                    logger.info("Client disconnected, abandoning stream")
                    return
                yield format_sse(event)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/generate-sql", response_model=GenerateSQLResponse)
async def generate_sql(
    generate_request: GenerateSQLRequest,
    engine: QueryEngine = Depends(get_engine),
) -> GenerateSQLResponse:
    """
    Synthesize a validated, tenant-scoped SELECT for a question.

    Validation failures surface as 400 through the exception handlers.
    """
    tenant = resolve_tenant(generate_request.context)
    query = await engine.generate_sql(generate_request.query, tenant)
    return GenerateSQLResponse(sql=query.sql, description=query.description, source=query.source)
