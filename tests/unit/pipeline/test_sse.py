"""
Tests for Server-Sent Events framing.
"""

import json
from datetime import date

from schoolnlq.models.query import DoneType, EventKind, StreamEvent
from schoolnlq.pipeline.sse import format_sse


class TestFormatSSE:
    """Test event framing."""

    def test_event_and_data_lines(self):
        frame = format_sse(StreamEvent.thinking("Formatting results..."))

        assert frame == 'event: thinking\ndata: {"message": "Formatting results..."}\n\n'

    def test_done_frame(self):
        frame = format_sse(StreamEvent.done(DoneType.DATA_QUERY))

        assert frame == 'event: done\ndata: {"type": "data_query"}\n\n'

    def test_unicode_is_not_escaped(self):
        frame = format_sse(StreamEvent.token("total: ₹12,500"))

        assert "₹12,500" in frame

    def test_non_json_values_are_stringified(self):
        event = StreamEvent(
            event=EventKind.DATA,
            data={"data": [{"due_date": date(2024, 7, 15)}], "count": 1},
        )

        frame = format_sse(event)

        assert frame.startswith("event: data\ndata: ")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {"data": [{"due_date": "2024-07-15"}], "count": 1}

    def test_multiline_token_stays_one_data_line(self):
        frame = format_sse(StreamEvent.token("line one\nline two"))

        assert frame.count("\n") == 3
        assert frame.endswith("\n\n")
