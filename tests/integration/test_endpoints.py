"""Integration tests for API endpoints"""
import json

import httpx
import pytest

from tests.fixtures.loader import BACKEND_URL


@pytest.mark.integration
class TestHealthEndpoint:
    """Test suite for /health and / endpoints"""

    def test_health_check(self, fastapi_test_client):
        """Test that health endpoint returns ok"""
        response = fastapi_test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'ok'
        assert 'timestamp' in data

    def test_root_reports_configuration(self, fastapi_test_client):
        """Test the root endpoint shows routing configuration"""
        fastapi_test_client.app.state.model_map = {"sonnet": "openai/gpt-4o", "opus": ""}

        response = fastapi_test_client.get("/")

        assert response.status_code == 200
        assert response.json()['config'] == {
            "mode": "hybrid",
            "default_model": None,
            "mappings": {"sonnet": "openai/gpt-4o"},
        }


@pytest.mark.integration
class TestCountTokensEndpoint:
    """Test suite for /v1/messages/count_tokens"""

    def test_count_tokens(self, fastapi_test_client, simple_request):
        """Test the estimate is returned without calling the backend"""
        response = fastapi_test_client.post("/v1/messages/count_tokens", json=simple_request)

        assert response.status_code == 200
        assert response.json()['input_tokens'] > 0


@pytest.mark.integration
class TestMessagesEndpoint:
    """Test suite for non-streaming /v1/messages"""

    def test_text_completion(self, fastapi_test_client, mock_httpx_client, simple_request, backend_text_response):
        """Test a simple request is translated both ways"""
        route = mock_httpx_client.post(BACKEND_URL).mock(
            return_value=httpx.Response(200, json=backend_text_response)
        )

        response = fastapi_test_client.post("/v1/messages", json=simple_request)

        assert response.status_code == 200
        data = response.json()
        assert data['type'] == 'message'
        assert data['content'] == [{"type": "text", "text": "Hello from the backend"}]
        assert data['stop_reason'] == 'end_turn'
        assert data['usage'] == {"input_tokens": 12, "output_tokens": 5}

        sent = json.loads(route.calls.last.request.content)
        assert sent['model'] == 'openai/gpt-4o'
        assert sent['messages'] == [{"role": "user", "content": "Hello"}]
        assert sent['max_tokens'] == 1024
        assert route.calls.last.request.headers['Authorization'] == 'Bearer test-key'

    def test_tool_request_round_trip(self, fastapi_test_client, mock_httpx_client, tools_request, backend_tool_response):
        """Test tools, identity filtering and tool_use responses"""
        route = mock_httpx_client.post(BACKEND_URL).mock(
            return_value=httpx.Response(200, json=backend_tool_response)
        )

        response = fastapi_test_client.post("/v1/messages", json=tools_request)

        assert response.status_code == 200
        data = response.json()
        assert data['stop_reason'] == 'tool_use'
        assert data['content'][1]['input'] == {"city": "Paris"}

        sent = json.loads(route.calls.last.request.content)
        assert sent['messages'][0]['role'] == 'system'
        assert sent['messages'][0]['content'].startswith("IMPORTANT: You are NOT Claude.")
        assert sent['tools'][0]['function']['name'] == 'get_weather'
        assert 'format' not in json.dumps(sent['tools'])
        assert sent['tool_choice'] == 'auto'
        assert [m['role'] for m in sent['messages']] == ['system', 'user', 'assistant', 'tool']

    def test_dropped_params_header(
        self, fastapi_test_client, mock_httpx_client, openai_flavoured_request, backend_text_response
    ):
        """Test unsupported parameters are listed in X-Dropped-Params"""
        fastapi_test_client.app.state.model_map = {"haiku": "openai/gpt-4o"}
        route = mock_httpx_client.post(BACKEND_URL).mock(
            return_value=httpx.Response(200, json=backend_text_response)
        )

        response = fastapi_test_client.post("/v1/messages", json=openai_flavoured_request)

        assert response.status_code == 200
        dropped = {name.strip() for name in response.headers['X-Dropped-Params'].split(",")}
        assert dropped == {"user", "seed", "n", "presence_penalty"}

        sent = json.loads(route.calls.last.request.content)
        assert sent['model'] == 'openai/gpt-4o'
        assert sent['stop'] == ['###']
        for name in ("seed", "n", "presence_penalty", "user"):
            assert name not in sent

    def test_no_dropped_params_header_when_clean(
        self, fastapi_test_client, mock_httpx_client, simple_request, backend_text_response
    ):
        """Test the header is absent when nothing was dropped"""
        mock_httpx_client.post(BACKEND_URL).mock(return_value=httpx.Response(200, json=backend_text_response))

        response = fastapi_test_client.post("/v1/messages", json=simple_request)

        assert 'X-Dropped-Params' not in response.headers

    def test_missing_api_key_returns_401(self, fastapi_test_client, monkeypatch, simple_request):
        """Test requests are rejected when no backend key is configured"""
        monkeypatch.setattr('proxy.handlers.request_handler.BACKEND_API_KEY', '')

        response = fastapi_test_client.post("/v1/messages", json=simple_request)

        assert response.status_code == 401
        data = response.json()
        assert data['type'] == 'error'
        assert data['error']['type'] == 'authentication_error'
        assert 'OPENROUTER_API_KEY' in data['error']['message']

    def test_missing_model_is_invalid_request(self, fastapi_test_client):
        """Test schema validation failures use the Anthropic error envelope"""
        response = fastapi_test_client.post("/v1/messages", json={"messages": []})

        assert response.status_code == 400
        assert response.json()['error']['type'] == 'invalid_request_error'
