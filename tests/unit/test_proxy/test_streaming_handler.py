"""Tests for the streaming request handler"""
import httpx
import pytest
import respx

from anthropic_compat import AnthropicStreamTranslator
from anthropic_compat.request_normalizer import normalize_request
from proxy.handlers.request_handler import PreparedRequest
from proxy.handlers.streaming_handler import stream_backend_response
from proxy.usage import SessionUsageTracker
from tests.fixtures.loader import BACKEND_URL
from tests.fixtures.loader import parse_sse_events, sse_chunk


def _prepared(simple_request):
    canonical, _ = normalize_request(dict(simple_request, stream=True))
    return PreparedRequest(
        request_id="req1",
        canonical=canonical,
        target_model="openai/gpt-4o",
        payload={"model": "openai/gpt-4o", "stream": True},
        base_url="https://openrouter.ai/api/v1",
        api_key="test-key",
        input_tokens=10,
        context_window=128000,
    )


class _ClosingTranslator(AnthropicStreamTranslator):
    closed = []

    async def translate(self, chunks):
        try:
            async for event in super().translate(chunks):
                yield event
        finally:
            self.closed.append(self.request_id)


async def _collect(prepared, tracker):
    output = [event async for event in stream_backend_response(prepared, tracker, ping_interval=5.0)]
    return parse_sse_events("".join(output))


@pytest.mark.unit
class TestStreamBackendResponse:
    """Test suite for stream_backend_response"""

    @respx.mock
    async def test_event_stream_is_translated(self, simple_request):
        """Test a backend event stream becomes Anthropic events and records usage"""
        body = b"".join([
            sse_chunk({"choices": [{"index": 0, "delta": {"content": "Hi"}}]}),
            sse_chunk({"choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 2}}),
            b"data: [DONE]\n\n",
        ])
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=body,
        ))
        tracker = SessionUsageTracker(port=0)

        events = await _collect(_prepared(simple_request), tracker)

        names = [name for name, _ in events]
        assert names[0] == "message_start"
        assert events[0][1]["message"]["model"] == "openai/gpt-4o"
        assert events[0][1]["message"]["usage"]["input_tokens"] == 10
        assert names[-3:] == ["message_delta", "message_stop", "done"]
        assert events[-3][1]["usage"] == {"output_tokens": 2}
        assert tracker.last_snapshot["total_tokens"] == 12
        assert tracker.last_snapshot["context_window"] == 128000

    @respx.mock
    async def test_backend_error_becomes_error_event(self, simple_request):
        """Test a non-2xx backend answer yields one error event"""
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            500, json={"error": {"message": "Internal failure"}},
        ))

        events = await _collect(_prepared(simple_request), SessionUsageTracker(port=0))

        assert [name for name, _ in events] == ["message_start", "ping", "error"]
        assert events[-1][1]["error"]["message"] == "Internal failure"

    @respx.mock
    async def test_connection_failure_becomes_error_event(self, simple_request):
        """Test a transport failure yields an error event instead of raising"""
        respx.post(BACKEND_URL).mock(side_effect=httpx.ConnectError("refused"))

        events = await _collect(_prepared(simple_request), SessionUsageTracker(port=0))

        assert events[-1][0] == "error"
        assert "refused" in events[-1][1]["error"]["message"]

    @respx.mock
    async def test_json_answer_is_replayed(self, simple_request, backend_text_response):
        """Test a JSON body for a streaming request is replayed as events"""
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(200, json=backend_text_response))
        tracker = SessionUsageTracker(port=0)

        events = await _collect(_prepared(simple_request), tracker)

        texts = [data["delta"]["text"] for name, data in events if name == "content_block_delta"]
        assert texts == ["Hello from the backend"]
        assert events[-1][0] == "done"
        assert tracker.last_snapshot["total_tokens"] == 17

    @respx.mock
    async def test_non_json_non_stream_answer_is_an_error(self, simple_request):
        """Test an unparseable non-stream body ends with an error event"""
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            200, headers={"content-type": "text/html"}, content=b"<html></html>",
        ))

        events = await _collect(_prepared(simple_request), SessionUsageTracker(port=0))

        assert events[-1][0] == "error"
        assert "done" not in [name for name, _ in events]

    @respx.mock
    async def test_client_disconnect_closes_translator(self, monkeypatch, simple_request):
        """Test closing the response stream closes the translator right away"""
        respx.post(BACKEND_URL).mock(return_value=httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=b"".join([
                sse_chunk({"choices": [{"index": 0, "delta": {"content": "one"}}]}),
                sse_chunk({"choices": [{"index": 0, "delta": {"content": "two"}}]}),
                b"data: [DONE]\n\n",
            ]),
        ))
        monkeypatch.setattr("proxy.handlers.streaming_handler.AnthropicStreamTranslator", _ClosingTranslator)
        _ClosingTranslator.closed = []

        stream = stream_backend_response(_prepared(simple_request), SessionUsageTracker(port=0), ping_interval=5.0)
        async for event in stream:
            if event.startswith("event: content_block_delta"):
                break
        await stream.aclose()

        assert _ClosingTranslator.closed == ["req1"]
