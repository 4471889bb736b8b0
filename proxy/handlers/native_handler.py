"""
Native Anthropic passthrough.
Forwards requests untranslated to the Anthropic Messages API, for models that
are not aggregator ids and for every request in monitor mode.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, Mapping

import httpx

from anthropic_compat.sse_parser import SSEParser
from config.settings import (
    CONNECT_TIMEOUT,
    NATIVE_API_KEY,
    NATIVE_BASE_URL,
    READ_TIMEOUT,
    REQUEST_TIMEOUT,
)
from constants import DEFAULT_ANTHROPIC_VERSION, NATIVE_FORWARDED_HEADERS

logger = logging.getLogger(__name__)


def _mask(credential: str) -> str:
    if len(credential) <= 12:
        return "***"
    return f"{credential[:8]}...{credential[-4:]}"


def build_native_headers(client_headers: Mapping[str, str]) -> Dict[str, str]:
    """Headers for a native request

    The client's own credentials and beta flags are forwarded. ``x-api-key``
    falls back to the configured Anthropic key when the client sends none.
    """
    headers = {
        "content-type": "application/json",
        "anthropic-version": client_headers.get("anthropic-version") or DEFAULT_ANTHROPIC_VERSION,
    }
    for name in NATIVE_FORWARDED_HEADERS:
        if client_headers.get(name):
            headers[name] = client_headers[name]

    api_key = client_headers.get("x-api-key") or NATIVE_API_KEY
    if api_key:
        headers["x-api-key"] = api_key

    if "x-api-key" not in headers and "authorization" not in headers:
        logger.warning("[NATIVE] No x-api-key or authorization header and no ANTHROPIC_API_KEY configured")
    return headers


def native_endpoint(path: str) -> str:
    return f"{NATIVE_BASE_URL.rstrip('/')}{path}"


def _timeout() -> httpx.Timeout:
    return httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT, read=READ_TIMEOUT)


async def make_native_request(
    body: Dict[str, Any],
    client_headers: Mapping[str, str],
    request_id: str,
    path: str = "/v1/messages",
) -> httpx.Response:
    """Make a non-streaming request to the Anthropic API

    Args:
        body: The request body, sent as-is
        client_headers: Headers of the incoming client request
        request_id: Request ID for logging
        path: API path, ``/v1/messages`` or ``/v1/messages/count_tokens``

    Returns:
        The HTTP response from Anthropic, whatever its status
    """
    headers = build_native_headers(client_headers)
    if "x-api-key" in headers:
        logger.debug(f"[{request_id}] [NATIVE] Using API key {_mask(headers['x-api-key'])}")
    logger.info(f"[{request_id}] [NATIVE] POST {path} (model={body.get('model')})")

    async with httpx.AsyncClient(timeout=_timeout()) as client:
        response = await client.post(native_endpoint(path), json=body, headers=headers)

    logger.debug(f"[{request_id}] [NATIVE] Response status: {response.status_code}")
    return response


def _error_event(status_code: int, body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if not isinstance(payload, dict) or "error" not in payload:
        payload = {
            "type": "error",
            "error": {"type": "api_error", "message": body.decode(errors="replace") or f"HTTP {status_code}"},
        }
    return f"event: error\ndata: {json.dumps(payload)}\n\n"


async def stream_native_response(
    body: Dict[str, Any],
    client_headers: Mapping[str, str],
    request_id: str,
    monitor: bool = False,
) -> AsyncIterator[bytes]:
    """Relay an Anthropic event stream byte for byte

    A non-2xx answer or a transport failure becomes a single SSE error event.
    In monitor mode every relayed event is also logged.
    """
    headers = build_native_headers(client_headers)
    logger.info(f"[{request_id}] [NATIVE] Streaming /v1/messages (model={body.get('model')})")
    parser = SSEParser() if monitor else None

    try:
        async with httpx.AsyncClient(timeout=_timeout()) as client:
            async with client.stream("POST", native_endpoint("/v1/messages"), json=body, headers=headers) as response:
                if not response.is_success:
                    error_body = await response.aread()
                    logger.error(f"[{request_id}] [NATIVE] Anthropic API error {response.status_code}: {error_body!r}")
                    yield _error_event(response.status_code, error_body).encode()
                    return

                async for chunk in response.aiter_bytes():
                    if parser is not None:
                        for event in parser.feed(chunk):
                            logger.info(f"[{request_id}] [MONITOR] {event.event or 'message'}: {event.data[:500]}")
                    yield chunk
    except httpx.HTTPError as e:
        logger.error(f"[{request_id}] [NATIVE] Stream failed: {e}")
        yield _error_event(502, f"Anthropic request failed: {e}".encode()).encode()
