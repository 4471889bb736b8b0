"""
Anthropic Messages API endpoints.
"""
import logging
import uuid
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from config.settings import PING_INTERVAL
from constants import DROPPED_PARAMS_HEADER
from models.resolution import is_native_model, resolve_target_model
from proxy.errors import ProxyAPIError
from proxy.handlers.native_handler import make_native_request, stream_native_response
from proxy.handlers.request_handler import (
    estimate_input_tokens,
    handle_non_streaming,
    prepare_backend_request,
)
from proxy.handlers.streaming_handler import stream_backend_response
from proxy.schemas import CountTokensRequest, MessagesRequest

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def _native_target(requested_model: str, state) -> Optional[str]:
    """Return the model to forward natively, or None when the request goes to the backend."""
    if state.monitor_mode:
        return requested_model
    target_model = resolve_target_model(requested_model, state.default_model, state.model_map)
    return target_model if is_native_model(target_model) else None


def _relay(response: httpx.Response) -> Response:
    headers = {}
    if "anthropic-version" in response.headers:
        headers["anthropic-version"] = response.headers["anthropic-version"]
    return Response(
        content=response.content,
        status_code=response.status_code,
        media_type=response.headers.get("content-type", "application/json"),
        headers=headers,
    )


async def _forward_native(body: Dict[str, Any], raw_request: Request, request_id: str, path: str) -> Response:
    try:
        response = await make_native_request(body, raw_request.headers, request_id, path=path)
    except httpx.HTTPError as e:
        logger.error(f"[{request_id}] [NATIVE] Request failed: {e}")
        raise ProxyAPIError(502, f"Anthropic request failed: {e}") from e

    if raw_request.app.state.monitor_mode:
        logger.info(f"[{request_id}] [MONITOR] {response.status_code} {response.text[:2000]}")
    return _relay(response)


@router.post("/v1/messages")
async def anthropic_messages(request: MessagesRequest, raw_request: Request):
    """Anthropic Messages API endpoint backed by a chat-completions model"""
    request_id = str(uuid.uuid4())[:8]
    body = request.model_dump(exclude_unset=True)

    logger.info(f"[{request_id}] ===== NEW MESSAGES REQUEST =====")
    logger.debug(f"[{request_id}] Model: {request.model}, stream: {request.stream}")

    state = raw_request.app.state
    native_model = _native_target(request.model, state)
    if native_model is not None:
        logger.info(f"[{request_id}] Routing {request.model} -> {native_model} (native)")
        body["model"] = native_model
        if request.stream:
            return StreamingResponse(
                stream_native_response(body, raw_request.headers, request_id, monitor=state.monitor_mode),
                media_type="text/event-stream",
                headers=STREAM_HEADERS,
            )
        return await _forward_native(body, raw_request, request_id, "/v1/messages")

    prepared = await prepare_backend_request(
        body,
        state.capabilities,
        request_id,
        default_model=state.default_model,
        model_map=state.model_map,
    )

    headers = {}
    if prepared.dropped:
        headers[DROPPED_PARAMS_HEADER] = ", ".join(prepared.dropped)

    if prepared.canonical.stream:
        headers.update(STREAM_HEADERS)
        return StreamingResponse(
            stream_backend_response(prepared, state.usage_tracker, PING_INTERVAL),
            media_type="text/event-stream",
            headers=headers,
        )

    result = await handle_non_streaming(prepared, state.usage_tracker)
    return JSONResponse(content=result, headers=headers)


@router.post("/v1/messages/count_tokens")
async def count_tokens(request: CountTokensRequest, raw_request: Request):
    """Count input tokens: forwarded for native models, estimated otherwise"""
    body = request.model_dump(exclude_unset=True)

    native_model = _native_target(request.model, raw_request.app.state)
    if native_model is not None:
        request_id = str(uuid.uuid4())[:8]
        body["model"] = native_model
        return await _forward_native(body, raw_request, request_id, "/v1/messages/count_tokens")

    input_tokens = estimate_input_tokens(body)
    logger.debug(f"Estimated {input_tokens} input tokens for model {request.model}")
    return {"input_tokens": input_tokens}
