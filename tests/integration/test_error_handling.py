"""Integration tests for backend error handling"""
import httpx
import pytest

from tests.fixtures.loader import BACKEND_URL
from tests.fixtures.loader import parse_sse_events, sse_chunk


@pytest.mark.integration
class TestNonStreamingErrors:
    """Test suite for backend failures on non-streaming requests"""

    @pytest.mark.parametrize("status,error_type", [
        (400, "invalid_request_error"),
        (429, "rate_limit_error"),
        (500, "api_error"),
    ])
    def test_backend_status_is_passed_through(
        self, fastapi_test_client, mock_httpx_client, simple_request, status, error_type
    ):
        """Test the backend status and message reach the client"""
        mock_httpx_client.post(BACKEND_URL).mock(return_value=httpx.Response(
            status, json={"error": {"message": f"backend said {status}"}},
        ))

        response = fastapi_test_client.post("/v1/messages", json=simple_request)

        assert response.status_code == status
        assert response.json() == {
            "type": "error",
            "error": {"type": error_type, "message": f"backend said {status}"},
        }

    def test_unreachable_backend_is_502(self, fastapi_test_client, mock_httpx_client, simple_request):
        """Test connection failures become a 502"""
        mock_httpx_client.post(BACKEND_URL).mock(side_effect=httpx.ConnectError("no route"))

        response = fastapi_test_client.post("/v1/messages", json=simple_request)

        assert response.status_code == 502
        assert response.json()['error']['type'] == 'api_error'


@pytest.mark.integration
class TestStreamingErrors:
    """Test suite for backend failures on streaming requests"""

    def test_backend_error_becomes_error_event(self, fastapi_test_client, mock_httpx_client, simple_request):
        """Test a backend 500 yields an SSE error event and no [DONE]"""
        mock_httpx_client.post(BACKEND_URL).mock(return_value=httpx.Response(
            500, json={"error": {"message": "upstream broke"}},
        ))

        response = fastapi_test_client.post("/v1/messages", json=dict(simple_request, stream=True))

        assert response.status_code == 200
        events = parse_sse_events(response.text)
        assert events[-1] == ("error", {"type": "error", "error": {"type": "api_error", "message": "upstream broke"}})
        assert "done" not in [name for name, _ in events]

    def test_mid_stream_error_frame(self, fastapi_test_client, mock_httpx_client, simple_request):
        """Test an error frame inside the stream closes open blocks then reports the error"""
        mock_httpx_client.post(BACKEND_URL).mock(return_value=httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=b"".join([
                sse_chunk({"choices": [{"index": 0, "delta": {"content": "partial"}}]}),
                sse_chunk({"error": {"message": "provider disconnected"}}),
                sse_chunk({"choices": [{"index": 0, "delta": {"content": "never seen"}}]}),
            ]),
        ))

        response = fastapi_test_client.post("/v1/messages", json=dict(simple_request, stream=True))

        events = parse_sse_events(response.text)
        names = [name for name, _ in events]
        assert names[-2:] == ["content_block_stop", "error"]
        assert events[-1][1]["error"]["message"] == "provider disconnected"
        assert "message_stop" not in names

    def test_json_answer_to_stream_request_is_replayed(
        self, fastapi_test_client, mock_httpx_client, simple_request, backend_text_response
    ):
        """Test a JSON body for a streaming request is replayed as SSE"""
        mock_httpx_client.post(BACKEND_URL).mock(return_value=httpx.Response(200, json=backend_text_response))

        response = fastapi_test_client.post("/v1/messages", json=dict(simple_request, stream=True))

        events = parse_sse_events(response.text)
        names = [name for name, _ in events]
        assert names[0] == "message_start"
        assert names[-1] == "done"
        deltas = [data["delta"]["text"] for name, data in events if name == "content_block_delta"]
        assert deltas == ["Hello from the backend"]
