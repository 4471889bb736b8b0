"""
Non-streaming response conversion from chat-completions to Anthropic.
"""
import logging
from typing import Any, Dict, List, Optional

from anthropic_compat.request_normalizer import parse_tool_arguments
from anthropic_compat.stream_converter import generate_message_id, generate_tool_id
from constants import FINISH_REASON_TO_STOP_REASON

logger = logging.getLogger(__name__)


def map_finish_reason_to_stop_reason(finish_reason: Optional[str]) -> str:
    return FINISH_REASON_TO_STOP_REASON.get(finish_reason or "", "end_turn")


def convert_backend_response(backend_response: Dict[str, Any], model: str) -> Dict[str, Any]:
    """
    Convert a chat-completions response body into an Anthropic message.

    The content always holds at least one text block, followed by one
    tool_use block per backend tool call. Usage numbers are passed through
    unchanged.

    Args:
        backend_response: Decoded chat-completions JSON
        model: Model name reported to the client

    Returns:
        Anthropic Messages API response
    """
    choices = backend_response.get("choices") if isinstance(backend_response, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
    message = choice.get("message") if isinstance(choice.get("message"), dict) else {}

    text = message.get("content")
    content: List[Dict[str, Any]] = [{"type": "text", "text": text if isinstance(text, str) else ""}]

    for tool_call in message.get("tool_calls") or []:
        if not isinstance(tool_call, dict):
            continue
        function = tool_call.get("function") or {}
        content.append({
            "type": "tool_use",
            "id": tool_call.get("id") or generate_tool_id(),
            "name": function.get("name", ""),
            "input": parse_tool_arguments(function.get("arguments")),
        })

    usage = backend_response.get("usage") if isinstance(backend_response, dict) else None
    usage = usage if isinstance(usage, dict) else {}

    stop_reason = map_finish_reason_to_stop_reason(choice.get("finish_reason"))
    logger.debug(
        f"[RESPONSE_CONVERSION] finish_reason={choice.get('finish_reason')} -> {stop_reason}, "
        f"blocks={len(content)}"
    )

    return {
        "id": generate_message_id(),
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": content,
        "stop_reason": stop_reason,
        "stop_sequence": None,
        "usage": {
            "input_tokens": usage.get("prompt_tokens") or 0,
            "output_tokens": usage.get("completion_tokens") or 0,
        },
    }
