"""Request bodies accepted by the proxy endpoints.

Both models are deliberately loose: unknown fields are kept so the
normalizer can translate or report them.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class MessagesRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str
    messages: Any = None
    system: Any = None
    max_tokens: Optional[int] = None
    stream: Optional[bool] = False


class CountTokensRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str = "claude-3-opus-20240229"
    messages: Any = None
