"""Server-Sent Events framing for stream events."""

import json

from schoolnlq.models.query import StreamEvent


def format_sse(event: StreamEvent) -> str:
    """Frame one event as ``event: <kind>`` / ``data: <json>`` plus a blank line."""
    payload = json.dumps(event.data, default=str, ensure_ascii=False)
    return f"event: {event.event.value}\ndata: {payload}\n\n"
