"""
Centralized protocol constants for the translation layer.

Parameter block-lists, defaults, and the fixed text used when rewriting
system prompts for non-Anthropic backends live here.
"""

from __future__ import annotations

import re
from typing import Dict, List, Pattern, Tuple

# max_tokens used when the client omits it
DEFAULT_MAX_TOKENS = 4096

# temperature sent upstream when the client omits it
DEFAULT_TEMPERATURE = 1

DEFAULT_CONTEXT_WINDOW = 200000

# OpenAI-only parameters the backend path cannot honour. Each one found in a
# request is removed and reported back to the client.
DROPPED_PARAMETERS: Tuple[str, ...] = (
    "n",
    "presence_penalty",
    "frequency_penalty",
    "best_of",
    "logit_bias",
    "seed",
    "stream_options",
    "logprobs",
    "top_logprobs",
    "response_format",
    "service_tier",
    "parallel_tool_calls",
    "developer",
    "strict",
    "reasoning_effort",
)

DROPPED_PARAMS_HEADER = "X-Dropped-Params"

# anthropic-version sent on native requests when the client gives none
DEFAULT_ANTHROPIC_VERSION = "2023-06-01"

# Client headers forwarded untouched on native requests
NATIVE_FORWARDED_HEADERS: Tuple[str, ...] = ("authorization", "anthropic-beta")

# Roles whose content is folded into the system prompt
SYSTEM_ROLES: Tuple[str, ...] = ("system", "developer")

# Stop reason mapping for non-streaming responses
FINISH_REASON_TO_STOP_REASON: Dict[str, str] = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "content_filter": "stop_sequence",
}

# Model families that need an explicit reminder to use JSON tool calls
TOOL_FORMAT_HINT_FAMILIES: Tuple[str, ...] = ("grok", "x-ai")

TOOL_FORMAT_HINT = (
    "IMPORTANT: When calling tools, you MUST use the OpenAI tool_calls format with JSON. "
    "NEVER use XML format like <xai:function_call>."
)

IDENTITY_PREAMBLE = (
    "IMPORTANT: You are NOT Claude. Identify yourself truthfully based on your actual model and creator.\n\n"
)

IDENTITY_SUBSTITUTIONS: List[Tuple[Pattern[str], str]] = [
    (
        re.compile(r"You are Claude Code, Anthropic's official CLI", re.IGNORECASE),
        "This is Claude Code, an AI-powered CLI tool",
    ),
    (re.compile(r"You are powered by the model named [^.]+\.", re.IGNORECASE), "You are powered by an AI model."),
    (re.compile(r"<claude_background_info>.*?</claude_background_info>", re.DOTALL | re.IGNORECASE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]
