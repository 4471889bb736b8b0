"""
Runtime settings for the proxy.

Every value goes through ConfigLoader, so an environment variable always wins
over config.json, which wins over the defaults below.
"""
from typing import Dict

from config.loader import get_config_loader
from constants import DEFAULT_CONTEXT_WINDOW as _DEFAULT_CONTEXT_WINDOW

_loader = get_config_loader()

# Server
PORT: int = _loader.get("PROXY_PORT", "server.port", 3000)
BIND_ADDRESS: str = _loader.get("PROXY_BIND_ADDRESS", "server.bind_address", "127.0.0.1")
LOG_LEVEL: str = _loader.get("PROXY_LOG_LEVEL", "server.log_level", "info")

# Backend (OpenAI-compatible aggregator)
BACKEND_BASE_URL: str = _loader.get("OPENROUTER_BASE_URL", "backend.base_url", "https://openrouter.ai/api/v1")
BACKEND_API_KEY: str = _loader.get("OPENROUTER_API_KEY", "backend.api_key", "")
BACKEND_REFERER: str = _loader.get("PROXY_HTTP_REFERER", "backend.referer", "http://localhost:3000")
BACKEND_TITLE: str = _loader.get("PROXY_APP_TITLE", "backend.title", "Anthropic OpenRouter Proxy")

# Native Anthropic passthrough for models that are not aggregator ids
NATIVE_BASE_URL: str = _loader.get("PROXY_ANTHROPIC_BASE_URL", "native.base_url", "https://api.anthropic.com")
NATIVE_API_KEY: str = _loader.get("ANTHROPIC_API_KEY", "native.api_key", "")
MONITOR_MODE: bool = _loader.get("PROXY_MONITOR_MODE", "native.monitor_mode", False)

# Timeouts (seconds)
REQUEST_TIMEOUT: float = _loader.get("PROXY_REQUEST_TIMEOUT", "timeouts.request", 120.0)
CONNECT_TIMEOUT: float = _loader.get("PROXY_CONNECT_TIMEOUT", "timeouts.connect", 30.0)
READ_TIMEOUT: float = _loader.get("PROXY_READ_TIMEOUT", "timeouts.read", 300.0)

# Model routing
DEFAULT_MODEL: str = _loader.get("PROXY_MODEL", "models.default", "")
MODEL_MAP: Dict[str, str] = {
    "opus": _loader.get("PROXY_MODEL_OPUS", "models.opus", ""),
    "sonnet": _loader.get("PROXY_MODEL_SONNET", "models.sonnet", ""),
    "haiku": _loader.get("PROXY_MODEL_HAIKU", "models.haiku", ""),
}
MODELS_JSON_PATH: str = _loader.get("PROXY_MODELS_JSON", "models.overrides_path", "models.json")
DEFAULT_CONTEXT_WINDOW: int = _loader.get("PROXY_DEFAULT_CONTEXT_WINDOW", "models.default_context_window", _DEFAULT_CONTEXT_WINDOW)

# Streaming
PING_INTERVAL: float = _loader.get("PROXY_PING_INTERVAL", "streaming.ping_interval", 1.0)

# Translation behaviour
IDENTITY_FILTER_ENABLED: bool = _loader.get("PROXY_IDENTITY_FILTER", "translation.identity_filter", True)

# Token status file for status-line displays
TOKEN_FILE_ENABLED: bool = _loader.get("PROXY_TOKEN_FILE", "usage.token_file_enabled", False)
TOKEN_FILE_DIR: str = _loader.get("PROXY_TOKEN_FILE_DIR", "usage.token_file_dir", "/tmp")
