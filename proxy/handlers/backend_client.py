"""
Backend integration layer.
Sends chat-completions requests to the OpenAI-compatible aggregator (OpenRouter by default).
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

import httpx

from config.settings import (
    BACKEND_REFERER,
    BACKEND_TITLE,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    REQUEST_TIMEOUT,
)

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Non-2xx answer from the backend."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Backend returned {status_code}: {body}")
        self.status_code = status_code
        self.body = body


def build_endpoint(base_url: str) -> str:
    """Append /chat/completions to a base URL unless it's already there."""
    if base_url.endswith('/chat/completions'):
        return base_url
    return f"{base_url.rstrip('/')}/chat/completions"


def build_headers(api_key: str, stream: bool) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Accept": "text/event-stream" if stream else "application/json",
        "HTTP-Referer": BACKEND_REFERER,
        "X-Title": BACKEND_TITLE,
    }


def _timeout() -> httpx.Timeout:
    return httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT, read=READ_TIMEOUT)


def is_event_stream(response: httpx.Response) -> bool:
    return "text/event-stream" in response.headers.get("content-type", "")


async def make_backend_request(
    payload: Dict[str, Any],
    base_url: str,
    api_key: str,
    request_id: str,
) -> httpx.Response:
    """Make a non-streaming request to the backend

    Args:
        payload: The chat-completions request body
        base_url: The backend's base URL (e.g., https://openrouter.ai/api/v1)
        api_key: The API key for authentication
        request_id: Request ID for logging

    Returns:
        The HTTP response from the backend, whatever its status
    """
    endpoint = build_endpoint(base_url)
    logger.debug(f"[{request_id}] Making backend request to {endpoint} (model={payload.get('model')})")

    async with httpx.AsyncClient(timeout=_timeout()) as client:
        response = await client.post(endpoint, json=payload, headers=build_headers(api_key, stream=False))

    logger.debug(f"[{request_id}] Backend response status: {response.status_code}")
    return response


@asynccontextmanager
async def open_backend_stream(
    payload: Dict[str, Any],
    base_url: str,
    api_key: str,
    request_id: str,
) -> AsyncIterator[httpx.Response]:
    """Open a streaming request to the backend

    Yields the response once headers have arrived. A non-2xx status is read
    in full and raised as BackendError.
    """
    endpoint = build_endpoint(base_url)
    logger.debug(f"[{request_id}] Streaming from backend: {endpoint} (model={payload.get('model')})")

    async with httpx.AsyncClient(timeout=_timeout()) as client:
        async with client.stream(
            "POST",
            endpoint,
            json=payload,
            headers=build_headers(api_key, stream=True),
        ) as response:
            logger.debug(
                f"[{request_id}] Backend responded with status={response.status_code} "
                f"content-type={response.headers.get('content-type')}"
            )
            if not response.is_success:
                error_body = (await response.aread()).decode(errors="replace")
                logger.error(f"[{request_id}] Backend error {response.status_code}: {error_body}")
                raise BackendError(response.status_code, error_body)
            yield response
