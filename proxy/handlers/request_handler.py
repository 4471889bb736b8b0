"""
Request preparation and non-streaming handling for /v1/messages.
"""
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from anthropic_compat import build_backend_payload, convert_backend_response, normalize_request
from anthropic_compat.types import CanonicalRequest
from config.settings import (
    BACKEND_API_KEY,
    BACKEND_BASE_URL,
    IDENTITY_FILTER_ENABLED,
)
from models.capabilities import ModelCapabilities
from models.resolution import resolve_target_model
from proxy.errors import ProxyAPIError
from proxy.handlers.backend_client import make_backend_request
from proxy.usage import SessionUsageTracker

logger = logging.getLogger(__name__)

STATUS_ERROR_TYPES = {
    400: "invalid_request_error",
    401: "authentication_error",
    403: "permission_error",
    404: "not_found_error",
    413: "request_too_large",
    429: "rate_limit_error",
    529: "overloaded_error",
}


@dataclass
class PreparedRequest:
    request_id: str
    canonical: CanonicalRequest
    target_model: str
    payload: Dict[str, Any]
    base_url: str
    api_key: str
    input_tokens: int = 0
    context_window: int = 0
    dropped: List[str] = field(default_factory=list)


def estimate_input_tokens(body: Any) -> int:
    """Rough token estimate: one token per four characters of compact JSON."""
    return math.ceil(len(json.dumps(body, separators=(",", ":"))) / 4)


def error_type_for_status(status_code: int) -> str:
    return STATUS_ERROR_TYPES.get(status_code, "api_error")


def require_api_key() -> str:
    """Fail fast when no backend credential is configured."""
    if not BACKEND_API_KEY:
        raise ProxyAPIError(
            401,
            "No backend API key configured. Set OPENROUTER_API_KEY or backend.api_key in config.json.",
            "authentication_error",
        )
    return BACKEND_API_KEY


async def prepare_backend_request(
    body: Dict[str, Any],
    capabilities: ModelCapabilities,
    request_id: str,
    default_model: Optional[str] = None,
    model_map: Optional[Dict[str, str]] = None,
) -> PreparedRequest:
    """Normalize a client request and build the backend payload for it

    Args:
        body: Decoded /v1/messages request body
        capabilities: Shared capability cache
        request_id: Request ID for logging
        default_model: Backend model used for every request, if set
        model_map: Family name -> backend model overrides

    Returns:
        Everything the streaming and non-streaming paths need
    """
    api_key = require_api_key()

    canonical, dropped = normalize_request(body)
    target_model = resolve_target_model(canonical.model, default_model, model_map)
    logger.info(f"[{request_id}] Routing {canonical.model} -> {target_model} (stream={canonical.stream})")
    if dropped:
        logger.info(f"[{request_id}] Dropped unsupported parameters: {', '.join(dropped)}")

    await capabilities.ready()
    supports_reasoning = await capabilities.supports_reasoning(target_model)
    context_window = await capabilities.context_window(target_model)

    payload = build_backend_payload(
        canonical,
        target_model,
        supports_reasoning=supports_reasoning,
        apply_identity_filter=IDENTITY_FILTER_ENABLED,
    )

    return PreparedRequest(
        request_id=request_id,
        canonical=canonical,
        target_model=target_model,
        payload=payload,
        base_url=BACKEND_BASE_URL,
        api_key=api_key,
        input_tokens=estimate_input_tokens(body),
        context_window=context_window,
        dropped=dropped,
    )


def backend_error_message(body: str) -> str:
    """Pull a readable message out of a backend error body."""
    try:
        data = json.loads(body)
    except ValueError:
        return body or "Backend request failed"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return body


async def handle_non_streaming(prepared: PreparedRequest, usage_tracker: SessionUsageTracker) -> Dict[str, Any]:
    """Run a non-streaming request and convert the answer

    Raises:
        ProxyAPIError: with the backend's status for non-2xx answers, or 502
            when the backend can't be reached or returns garbage
    """
    request_id = prepared.request_id
    try:
        response = await make_backend_request(prepared.payload, prepared.base_url, prepared.api_key, request_id)
    except httpx.HTTPError as e:
        logger.error(f"[{request_id}] Backend request failed: {e}")
        raise ProxyAPIError(502, f"Backend request failed: {e}") from e

    if not response.is_success:
        logger.error(f"[{request_id}] Backend error {response.status_code}: {response.text}")
        raise ProxyAPIError(
            response.status_code,
            backend_error_message(response.text),
            error_type_for_status(response.status_code),
        )

    try:
        backend_json = response.json()
    except ValueError as e:
        raise ProxyAPIError(502, "Backend returned a non-JSON response") from e

    result = convert_backend_response(backend_json, prepared.target_model)
    usage = backend_json.get("usage") if isinstance(backend_json, dict) else None
    if isinstance(usage, dict):
        usage_tracker.record(prepared.target_model, usage, prepared.context_window)

    logger.debug(f"[{request_id}] Non-streaming response: stop_reason={result['stop_reason']}")
    return result
