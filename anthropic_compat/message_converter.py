"""
Message conversion between the Anthropic content-block history and the
OpenAI chat-completions message list.
"""
import json
import logging
from typing import Any, Dict, List

from anthropic_compat.identity_filter import filter_identity
from anthropic_compat.request_normalizer import convert_openai_content_part, parse_tool_arguments
from anthropic_compat.types import CanonicalRequest
from constants import TOOL_FORMAT_HINT, TOOL_FORMAT_HINT_FAMILIES

logger = logging.getLogger(__name__)


def dedupe_content_blocks(blocks: List[Any]) -> List[Any]:
    """Drop repeated tool_use ids and repeated tool_result references.

    The first occurrence wins. Applying this twice gives the same result as
    applying it once.
    """
    seen_tool_uses = set()
    seen_tool_results = set()
    result: List[Any] = []
    for block in blocks:
        if isinstance(block, dict):
            block_type = block.get("type")
            if block_type == "tool_use":
                if block.get("id") in seen_tool_uses:
                    logger.debug(f"[MESSAGE_CONVERSION] Dropping duplicate tool_use {block.get('id')}")
                    continue
                seen_tool_uses.add(block.get("id"))
            elif block_type == "tool_result":
                if block.get("tool_use_id") in seen_tool_results:
                    logger.debug(f"[MESSAGE_CONVERSION] Dropping duplicate tool_result {block.get('tool_use_id')}")
                    continue
                seen_tool_results.add(block.get("tool_use_id"))
        result.append(block)
    return result


def needs_tool_format_hint(model_id: str) -> bool:
    lowered = (model_id or "").lower()
    return any(family in lowered for family in TOOL_FORMAT_HINT_FAMILIES)


def to_backend_messages(
    request: CanonicalRequest,
    target_model: str,
    apply_identity_filter: bool = True,
) -> List[Dict[str, Any]]:
    """Build the backend message list for a normalized request.

    Args:
        request: The normalized client request
        target_model: Backend model id, used to pick model-family adjustments
        apply_identity_filter: Rewrite Claude identity claims in the system prompt

    Returns:
        OpenAI chat-completions messages
    """
    messages: List[Dict[str, Any]] = []

    if request.system:
        system = filter_identity(request.system) if apply_identity_filter else request.system
        messages.append({"role": "system", "content": system})

    if needs_tool_format_hint(target_model):
        if messages:
            messages[0]["content"] += "\n\n" + TOOL_FORMAT_HINT
        else:
            messages.insert(0, {"role": "system", "content": TOOL_FORMAT_HINT})
        logger.debug(f"[MESSAGE_CONVERSION] Added tool format hint for {target_model}")

    for message in request.messages:
        role = message.get("role")
        content = message.get("content")
        if role == "user":
            messages.extend(_convert_user_message(content))
        elif role == "assistant":
            messages.append(_convert_assistant_message(content))
        else:
            logger.debug(f"[MESSAGE_CONVERSION] Skipping message with role {role!r}")

    return messages


def _convert_user_message(content: Any) -> List[Dict[str, Any]]:
    if not isinstance(content, list):
        return [{"role": "user", "content": content if isinstance(content, str) else json.dumps(content)}]

    tool_messages: List[Dict[str, Any]] = []
    parts: List[Dict[str, Any]] = []
    for block in dedupe_content_blocks(content):
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            parts.append({"type": "text", "text": block.get("text", "")})
        elif block_type == "image":
            image_part = _image_part(block.get("source"))
            if image_part:
                parts.append(image_part)
        elif block_type == "tool_result":
            result = block.get("content", "")
            tool_messages.append({
                "role": "tool",
                "tool_call_id": block.get("tool_use_id", ""),
                "content": result if isinstance(result, str) else json.dumps(result),
            })

    # Tool results answer the previous assistant turn, so they go first
    messages = tool_messages
    if parts:
        messages.append({"role": "user", "content": parts})
    return messages


def _image_part(source: Any) -> Any:
    if not isinstance(source, dict):
        return None
    if source.get("type") == "base64":
        url = f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"
    elif source.get("type") == "url" and source.get("url"):
        url = source["url"]
    else:
        return None
    return {"type": "image_url", "image_url": {"url": url}}


def _convert_assistant_message(content: Any) -> Dict[str, Any]:
    if not isinstance(content, list):
        return {"role": "assistant", "content": content if isinstance(content, str) else json.dumps(content)}

    texts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []
    for block in dedupe_content_blocks(content):
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text":
            texts.append(block.get("text", ""))
        elif block.get("type") == "tool_use":
            arguments = block.get("input", {})
            tool_calls.append({
                "id": block.get("id", ""),
                "type": "function",
                "function": {
                    "name": block.get("name", ""),
                    "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
                },
            })

    message: Dict[str, Any] = {"role": "assistant"}
    if texts:
        message["content"] = " ".join(texts)
    elif tool_calls:
        message["content"] = None
    else:
        message["content"] = ""
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def to_client_message(message: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Convert one backend message back into Anthropic content blocks."""
    if message.get("role") == "tool":
        return [{
            "type": "tool_result",
            "tool_use_id": message.get("tool_call_id", ""),
            "content": message.get("content") or "",
        }]

    blocks: List[Dict[str, Any]] = []
    content = message.get("content")
    if isinstance(content, str):
        if content:
            blocks.append({"type": "text", "text": content})
    elif isinstance(content, list):
        for part in content:
            converted = convert_openai_content_part(part)
            if isinstance(converted, dict) and converted.get("type") in ("text", "image"):
                blocks.append(converted)

    for call in message.get("tool_calls") or []:
        if not isinstance(call, dict):
            continue
        function = call.get("function") or {}
        blocks.append({
            "type": "tool_use",
            "id": call.get("id", ""),
            "name": function.get("name", ""),
            "input": parse_tool_arguments(function.get("arguments")),
        })
    return blocks
