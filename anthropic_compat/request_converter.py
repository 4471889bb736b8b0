"""
Backend payload construction for a normalized request.
"""
import logging
from typing import Any, Dict, List, Optional

from anthropic_compat.message_converter import to_backend_messages
from anthropic_compat.types import CanonicalRequest, ToolChoice, ToolSpec
from constants import DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)


def convert_tools_to_backend(tools: List[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def convert_tool_choice_to_backend(tool_choice: Optional[ToolChoice]) -> Any:
    """Map an Anthropic tool choice onto the chat-completions form."""
    if tool_choice is None:
        return None
    if tool_choice.type == "tool":
        return {"type": "function", "function": {"name": tool_choice.name}}
    if tool_choice.type == "any":
        return "required"
    return tool_choice.type


def build_backend_payload(
    request: CanonicalRequest,
    target_model: str,
    supports_reasoning: bool = False,
    apply_identity_filter: bool = True,
) -> Dict[str, Any]:
    """Build the chat-completions request body sent to the backend.

    Args:
        request: The normalized client request
        target_model: Backend model id
        supports_reasoning: Whether the model accepts ``include_reasoning``
        apply_identity_filter: Rewrite Claude identity claims in the system prompt

    Returns:
        The backend request body
    """
    payload: Dict[str, Any] = {
        "model": target_model,
        "messages": to_backend_messages(request, target_model, apply_identity_filter),
        "temperature": request.temperature if request.temperature is not None else DEFAULT_TEMPERATURE,
        "max_tokens": request.max_tokens,
        "stream": request.stream,
    }

    if request.top_p is not None:
        payload["top_p"] = request.top_p
    if request.stop_sequences:
        payload["stop"] = request.stop_sequences

    if request.tools:
        payload["tools"] = convert_tools_to_backend(request.tools)
        tool_choice = convert_tool_choice_to_backend(request.tool_choice)
        if tool_choice is not None:
            payload["tool_choice"] = tool_choice

    if request.stream:
        payload["stream_options"] = {"include_usage": True}
    if supports_reasoning:
        payload["include_reasoning"] = True
    if request.thinking:
        payload["thinking"] = request.thinking

    logger.debug(
        f"[REQUEST_CONVERSION] model={target_model} messages={len(payload['messages'])} "
        f"tools={len(request.tools)} stream={request.stream}"
    )
    return payload
