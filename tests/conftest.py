"""Shared pytest fixtures for all tests

This module provides common fixtures used across unit and integration tests.
"""
import json
import os
import tempfile

import pytest
import respx
from fastapi.testclient import TestClient

from tests.fixtures.loader import (
    CATALOG_URL,
    get_anthropic_request,
    get_backend_response,
    get_models_config,
)


@pytest.fixture
def temp_models_config_file():
    """Create a temporary models.json file for testing"""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        json.dump(get_models_config(), f)
        temp_path = f.name

    yield temp_path

    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def simple_request():
    """Get a simple Anthropic request"""
    return get_anthropic_request('simple_chat')


@pytest.fixture
def tools_request():
    """Get an Anthropic request with tools and a tool round-trip"""
    return get_anthropic_request('with_tools')


@pytest.fixture
def openai_flavoured_request():
    """Get a request carrying OpenAI-only parameters"""
    return get_anthropic_request('openai_flavoured')


@pytest.fixture
def backend_text_response():
    """Get a simple chat-completions text response"""
    return get_backend_response('simple_text_response')


@pytest.fixture
def backend_tool_response():
    """Get a chat-completions tool call response"""
    return get_backend_response('tool_call_response')


@pytest.fixture
def mock_httpx_client():
    """Mock all outgoing httpx traffic"""
    with respx.mock:
        yield respx


@pytest.fixture
def api_key(monkeypatch):
    """Configure a backend API key for the request handler"""
    monkeypatch.setattr('proxy.handlers.request_handler.BACKEND_API_KEY', 'test-key')
    return 'test-key'


@pytest.fixture
def fastapi_test_client(api_key):
    """Create a FastAPI TestClient with a pre-seeded capability cache

    Sonnet requests are mapped to an aggregator model so they reach the
    translated backend path.
    """
    from models.capabilities import ModelCapabilities
    from proxy.app import app
    from proxy.usage import SessionUsageTracker

    original_state = (
        app.state.capabilities,
        app.state.usage_tracker,
        app.state.default_model,
        app.state.model_map,
        app.state.monitor_mode,
    )
    app.state.capabilities = ModelCapabilities(
        catalog_url=CATALOG_URL,
        overrides=[
            {"id": "claude-sonnet-4-20250514", "context_length": 200000, "supports_reasoning": False},
            {"id": "openai/gpt-4o", "context_length": 128000, "supports_reasoning": False},
        ],
    )
    app.state.usage_tracker = SessionUsageTracker(port=0, write_file=False)
    app.state.default_model = ""
    app.state.model_map = {"sonnet": "openai/gpt-4o"}
    app.state.monitor_mode = False

    with TestClient(app) as client:
        yield client

    (
        app.state.capabilities,
        app.state.usage_tracker,
        app.state.default_model,
        app.state.model_map,
        app.state.monitor_mode,
    ) = original_state


@pytest.fixture
def native_api_key(monkeypatch):
    """Point the native passthrough at api.anthropic.com with a configured key"""
    monkeypatch.setattr('proxy.handlers.native_handler.NATIVE_BASE_URL', 'https://api.anthropic.com')
    monkeypatch.setattr('proxy.handlers.native_handler.NATIVE_API_KEY', 'sk-ant-configured')
    return 'sk-ant-configured'


@pytest.fixture
def anthropic_message():
    """Get a native Anthropic Messages API response"""
    return {
        "id": "msg_native",
        "type": "message",
        "role": "assistant",
        "model": "claude-opus-4-20250514",
        "content": [{"type": "text", "text": "Straight from Anthropic"}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 9, "output_tokens": 4},
    }


# Markers for convenience
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (may use TestClient)"
    )
