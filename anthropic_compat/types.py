"""Typed views over a normalized Anthropic Messages request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import DEFAULT_MAX_TOKENS


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True)
class ToolChoice:
    type: str = "auto"
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.type == "tool":
            return {"type": "tool", "name": self.name}
        return {"type": self.type}


@dataclass
class CanonicalRequest:
    """A client request after normalization.

    ``messages`` keeps the Anthropic wire shape (``role`` plus string or
    content-block list) with only ``user`` and ``assistant`` roles, and
    ``system`` is always a flat string or None.
    """

    model: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    system: Optional[str] = None
    tools: List[ToolSpec] = field(default_factory=list)
    tool_choice: Optional[ToolChoice] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None
    thinking: Optional[Dict[str, Any]] = None
    stream: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Render the request back into the Anthropic wire shape."""
        data: Dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }
        if self.system is not None:
            data["system"] = self.system
        if self.tools:
            data["tools"] = [tool.to_dict() for tool in self.tools]
        if self.tool_choice is not None:
            data["tool_choice"] = self.tool_choice.to_dict()
        for key in ("temperature", "top_p", "top_k", "stop_sequences", "metadata", "thinking"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data
