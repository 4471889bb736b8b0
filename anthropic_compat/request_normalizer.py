"""
Request normalization.

Turns an incoming Messages request, which may carry OpenAI-flavoured fields
and history, into a CanonicalRequest plus the list of parameters that had to
be dropped. Normalization never raises on JSON-shaped input.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from anthropic_compat.schema import strip_uri_format
from anthropic_compat.types import CanonicalRequest, ToolChoice, ToolSpec
from constants import DEFAULT_MAX_TOKENS, DROPPED_PARAMETERS, SYSTEM_ROLES

logger = logging.getLogger(__name__)


def normalize_request(raw: Any) -> Tuple[CanonicalRequest, List[str]]:
    """Normalize a client request.

    Args:
        raw: The decoded JSON body of a /v1/messages request

    Returns:
        Tuple of (canonical request, names of dropped parameters in the order
        they were found)
    """
    body: Dict[str, Any] = dict(raw) if isinstance(raw, dict) else {}
    dropped: List[str] = []

    if "stop" in body:
        stop = body.pop("stop")
        if stop is not None:
            body["stop_sequences"] = stop if isinstance(stop, list) else [stop]

    if "user" in body:
        user = body.pop("user")
        dropped.append("user")
        if user is not None:
            metadata = dict(body["metadata"]) if isinstance(body.get("metadata"), dict) else {}
            metadata["user_id"] = user
            body["metadata"] = metadata

    for key in DROPPED_PARAMETERS:
        if key in body:
            body.pop(key)
            dropped.append(key)

    max_tokens = body.get("max_tokens")
    if not isinstance(max_tokens, int) or isinstance(max_tokens, bool):
        max_tokens = DEFAULT_MAX_TOKENS

    tools = _normalize_tools(body.get("tools"), body.get("functions"))
    messages, extracted_system = _normalize_messages(body.get("messages"))
    system = _join_system(_collapse_system(body.get("system")), extracted_system)
    tool_choice = _normalize_tool_choice(body.get("tool_choice", body.get("function_call")), bool(tools))

    request = CanonicalRequest(
        model=str(body.get("model") or ""),
        messages=messages,
        system=system,
        tools=tools,
        tool_choice=tool_choice,
        max_tokens=max_tokens,
        temperature=_number_or_none(body.get("temperature")),
        top_p=_number_or_none(body.get("top_p")),
        top_k=body.get("top_k") if isinstance(body.get("top_k"), int) else None,
        stop_sequences=body.get("stop_sequences") or None,
        metadata=body.get("metadata") if isinstance(body.get("metadata"), dict) else None,
        thinking=body.get("thinking") if isinstance(body.get("thinking"), dict) else None,
        stream=bool(body.get("stream", False)),
    )

    if dropped:
        logger.debug(f"[REQUEST_NORMALIZER] Dropped parameters: {dropped}")
    return request, dropped


def extract_text_content(content: Any, separator: str = "\n") -> str:
    """Flatten string / block-list content into plain text.

    Falls back to the JSON encoding for shapes that carry no recognisable text.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return separator.join(part for part in parts if part)
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    return json.dumps(content)


def _collapse_system(system: Any) -> Optional[str]:
    if system is None:
        return None
    text = extract_text_content(system, separator="\n\n")
    return text or None


def _join_system(*parts: Any) -> Optional[str]:
    pieces: List[str] = []
    for part in parts:
        if isinstance(part, list):
            pieces.extend(part)
        elif part:
            pieces.append(part)
    pieces = [piece for piece in pieces if piece]
    return "\n\n".join(pieces) if pieces else None


def _normalize_messages(raw_messages: Any) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Return (messages, system texts pulled out of the history)."""
    if raw_messages is None:
        raw_messages = []
    elif not isinstance(raw_messages, list):
        raw_messages = [raw_messages]

    messages: List[Dict[str, Any]] = []
    system_parts: List[str] = []

    for idx, msg in enumerate(raw_messages):
        if not isinstance(msg, dict):
            logger.debug(f"[REQUEST_NORMALIZER] Skipping non-object message at index {idx}")
            continue

        role = msg.get("role")
        content = msg.get("content")

        if role in SYSTEM_ROLES:
            text = extract_text_content(content)
            if text:
                system_parts.append(text)
            continue

        if role in ("tool", "function"):
            block = {
                "type": "tool_result",
                "tool_use_id": msg.get("tool_call_id") or msg.get("name") or "",
                "content": content if content is not None else "",
            }
            _append_tool_result(messages, block)
            continue

        if role == "assistant" and (msg.get("tool_calls") or msg.get("function_call")):
            messages.append({"role": "assistant", "content": _assistant_blocks_from_openai(msg)})
            continue

        if role == "user" and isinstance(content, list):
            messages.append({"role": "user", "content": [convert_openai_content_part(part) for part in content]})
            continue

        if role not in ("user", "assistant"):
            logger.debug(f"[REQUEST_NORMALIZER] Passing through message with unknown role {role!r}")

        normalized = dict(msg)
        if normalized.get("content") is None:
            normalized["content"] = ""
        messages.append(normalized)

    return messages, system_parts


def _append_tool_result(messages: List[Dict[str, Any]], block: Dict[str, Any]) -> None:
    # Consecutive tool results share one user turn
    if messages:
        last = messages[-1]
        last_content = last.get("content")
        if (
            last.get("role") == "user"
            and isinstance(last_content, list)
            and last_content
            and all(isinstance(b, dict) and b.get("type") == "tool_result" for b in last_content)
        ):
            last_content.append(block)
            return
    messages.append({"role": "user", "content": [block]})


def _assistant_blocks_from_openai(msg: Dict[str, Any]) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = []
    text = msg.get("content")
    if isinstance(text, str) and text:
        blocks.append({"type": "text", "text": text})
    elif isinstance(text, list):
        blocks.extend(b for b in text if isinstance(b, dict))

    calls = msg.get("tool_calls") or []
    if not isinstance(calls, list):
        calls = []
    function_call = msg.get("function_call")
    if isinstance(function_call, dict):
        calls = calls + [{"id": function_call.get("id"), "function": function_call}]

    for position, call in enumerate(calls):
        if not isinstance(call, dict):
            continue
        function = call.get("function") if isinstance(call.get("function"), dict) else {}
        blocks.append({
            "type": "tool_use",
            "id": call.get("id") or f"call_{position}",
            "name": function.get("name", ""),
            "input": parse_tool_arguments(function.get("arguments")),
        })
    return blocks


def parse_tool_arguments(arguments: Any) -> Any:
    """Decode a tool-call ``arguments`` value.

    Strings are JSON-decoded; an unparseable string is kept as-is and
    anything already decoded passes through.
    """
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, str):
        try:
            return json.loads(arguments)
        except json.JSONDecodeError:
            logger.debug("[REQUEST_NORMALIZER] Keeping unparseable tool arguments as raw string")
            return arguments
    return arguments


def convert_openai_content_part(part: Any) -> Any:
    """Map OpenAI user content parts onto Anthropic blocks; others pass through."""
    if isinstance(part, str):
        return {"type": "text", "text": part}
    if not isinstance(part, dict) or part.get("type") != "image_url":
        return part

    image_url = part.get("image_url")
    url = image_url.get("url", "") if isinstance(image_url, dict) else str(image_url or "")
    if url.startswith("data:") and ";base64," in url:
        header, data = url.split(";base64,", 1)
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": header[len("data:"):], "data": data},
        }
    return {"type": "image", "source": {"type": "url", "url": url}}


def _normalize_tools(tools: Any, functions: Any) -> List[ToolSpec]:
    merged: List[Any] = []
    for group in (tools, functions):
        if isinstance(group, list):
            merged.extend(group)

    specs: List[ToolSpec] = []
    for tool in merged:
        if not isinstance(tool, dict):
            continue
        function = tool.get("function") if isinstance(tool.get("function"), dict) else tool
        name = function.get("name") or tool.get("name")
        if not name:
            logger.debug("[REQUEST_NORMALIZER] Skipping tool without a name")
            continue

        schema = function.get("parameters", function.get("input_schema", tool.get("input_schema")))
        if not isinstance(schema, dict):
            schema = {"type": "object", "properties": {}}
        schema = strip_uri_format(schema)
        if function.get("strict") or tool.get("strict"):
            schema["additionalProperties"] = False

        specs.append(ToolSpec(
            name=str(name),
            description=str(function.get("description") or tool.get("description") or ""),
            input_schema=schema,
        ))
    return specs


def _normalize_tool_choice(choice: Any, has_tools: bool) -> Optional[ToolChoice]:
    if isinstance(choice, str):
        if choice == "none":
            return ToolChoice("none")
        if choice == "required":
            return ToolChoice("any")
        return ToolChoice("auto")

    if isinstance(choice, dict):
        function = choice.get("function")
        if isinstance(function, dict) and function.get("name"):
            return ToolChoice("tool", str(function["name"]))
        if choice.get("name"):
            return ToolChoice("tool", str(choice["name"]))
        if choice.get("type") in ("auto", "none", "any"):
            return ToolChoice(choice["type"])

    return ToolChoice("auto") if has_tools else None


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value
