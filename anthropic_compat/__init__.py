"""Translation layer between the Anthropic Messages API and chat-completions backends."""
from anthropic_compat.request_converter import build_backend_payload
from anthropic_compat.request_normalizer import normalize_request
from anthropic_compat.response_converter import convert_backend_response
from anthropic_compat.stream_converter import AnthropicStreamTranslator, replay_response_events

__all__ = [
    "AnthropicStreamTranslator",
    "build_backend_payload",
    "convert_backend_response",
    "normalize_request",
    "replay_response_events",
]
