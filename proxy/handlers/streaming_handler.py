"""
Streaming handling for /v1/messages.
"""
import json
import logging
from contextlib import aclosing
from functools import partial
from typing import AsyncIterator

import httpx

from anthropic_compat import AnthropicStreamTranslator, convert_backend_response, replay_response_events
from proxy.handlers.backend_client import BackendError, is_event_stream, open_backend_stream
from proxy.handlers.request_handler import PreparedRequest, backend_error_message
from proxy.usage import SessionUsageTracker

logger = logging.getLogger(__name__)


async def stream_backend_response(
    prepared: PreparedRequest,
    usage_tracker: SessionUsageTracker,
    ping_interval: float = 1.0,
) -> AsyncIterator[str]:
    """Stream one request through the backend as Anthropic SSE events

    Failures before or during the stream become a single error event. When
    the backend ignores ``stream: true`` and answers with JSON, the complete
    response is replayed as an event sequence.
    """
    request_id = prepared.request_id
    translator = AnthropicStreamTranslator(
        model=prepared.target_model,
        request_id=request_id,
        input_tokens=prepared.input_tokens,
        ping_interval=ping_interval,
        on_usage=partial(usage_tracker.record, prepared.target_model, context_window=prepared.context_window),
    )

    try:
        async with open_backend_stream(prepared.payload, prepared.base_url, prepared.api_key, request_id) as response:
            if not is_event_stream(response):
                logger.warning(
                    f"[{request_id}] Backend answered with {response.headers.get('content-type')} "
                    f"instead of an event stream, replaying as SSE"
                )
                body = await response.aread()
                try:
                    backend_json = json.loads(body)
                except ValueError:
                    for event in translator.finalize("error", "Backend returned a non-JSON response"):
                        yield event
                    return
                for event in replay_response_events(convert_backend_response(backend_json, prepared.target_model)):
                    yield event
                usage = backend_json.get("usage") if isinstance(backend_json, dict) else None
                if isinstance(usage, dict):
                    usage_tracker.record(prepared.target_model, usage, prepared.context_window)
                return

            async with aclosing(translator.translate(response.aiter_bytes())) as events:
                async for event in events:
                    yield event
    except BackendError as e:
        for event in translator.finalize("error", backend_error_message(e.body)):
            yield event
    except httpx.HTTPError as e:
        logger.error(f"[{request_id}] Backend stream failed: {e}")
        for event in translator.finalize("error", f"Backend request failed: {e}"):
            yield event
