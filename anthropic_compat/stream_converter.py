"""
Streaming translation from chat-completions chunks to Anthropic SSE events.

One AnthropicStreamTranslator is created per request. It owns all of the
per-stream bookkeeping, so concurrent requests never share state.
"""
import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from anthropic_compat.sse_parser import SSEParser

logger = logging.getLogger(__name__)

DONE_SENTINEL = "data: [DONE]\n\n"

_EOF = object()


def format_sse_event(event_type: str, payload: Dict[str, Any]) -> str:
    return f"event: {event_type}\ndata: {json.dumps(payload)}\n\n"


def generate_message_id() -> str:
    return f"msg_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def generate_tool_id() -> str:
    return f"toolu_{uuid.uuid4().hex[:24]}"


@dataclass
class ToolBlockState:
    id: Optional[str] = None
    name: str = ""
    block_index: Optional[int] = None
    started: bool = False
    closed: bool = False
    pending_arguments: List[str] = field(default_factory=list)


@dataclass
class StreamState:
    message_id: str
    next_block_index: int = 0
    text_block_index: Optional[int] = None
    tool_blocks: Dict[int, ToolBlockState] = field(default_factory=dict)
    usage: Optional[Dict[str, Any]] = None
    started: bool = False
    finalized: bool = False
    closed: bool = False
    last_activity: float = field(default_factory=time.monotonic)


async def _read_next(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EOF


class AnthropicStreamTranslator:
    """Rebuilds an Anthropic event stream from chat-completions SSE chunks.

    Content blocks are opened lazily and indexed in order of first
    appearance. At most one text block is open at a time and a block index is
    never reused. ``finalize`` is idempotent and emits exactly one terminal
    sequence.
    """

    def __init__(
        self,
        model: str,
        request_id: str,
        input_tokens: int = 0,
        ping_interval: float = 1.0,
        on_usage: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.model = model
        self.request_id = request_id
        self.input_tokens = input_tokens
        self.ping_interval = ping_interval
        self.on_usage = on_usage
        self.state = StreamState(message_id=generate_message_id())
        self.parser = SSEParser()

    # Lifecycle -----------------------------------------------------------

    def start(self) -> List[str]:
        """Emit message_start followed by an immediate ping."""
        if self.state.started:
            return []
        self.state.started = True
        message = {
            "id": self.state.message_id,
            "type": "message",
            "role": "assistant",
            "content": [],
            "model": self.model,
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": self.input_tokens, "output_tokens": 1},
        }
        return [
            format_sse_event("message_start", {"type": "message_start", "message": message}),
            self._ping(),
        ]

    def feed(self, chunk: Union[str, bytes]) -> List[str]:
        """Consume one upstream chunk and return the client events it produced."""
        if self.state.finalized or self.state.closed:
            return []
        events: List[str] = []
        for sse_event in self.parser.feed(chunk):
            events.extend(self._handle_data(sse_event.data))
            if self.state.finalized:
                break
        return events

    def finish(self) -> List[str]:
        """Handle upstream EOF: parse any trailing line, then finalize."""
        if self.state.finalized or self.state.closed:
            return []
        events: List[str] = []
        for sse_event in self.parser.flush():
            events.extend(self._handle_data(sse_event.data))
        events.extend(self.finalize("eof"))
        return events

    def finalize(self, reason: str, error: Optional[str] = None) -> List[str]:
        """Close open blocks and emit the terminal sequence.

        Args:
            reason: ``done`` or ``eof`` for a normal completion, ``error`` otherwise
            error: Message carried by the error event

        Returns:
            Events to send; empty when the stream was already finalized
        """
        if self.state.finalized or self.state.closed:
            return []

        events: List[str] = []
        if not self.state.started:
            events.extend(self.start())
        self.state.finalized = True

        events.extend(self._close_text_block())
        events.extend(self._close_tool_blocks())

        dropped = [idx for idx, block in self.state.tool_blocks.items() if not block.started]
        if dropped:
            logger.debug(f"[{self.request_id}] [STREAM_TOOL] Never started tool calls at upstream indexes {dropped}")

        if reason == "error":
            logger.error(f"[{self.request_id}] Stream finished with error: {error}")
            events.append(format_sse_event("error", {
                "type": "error",
                "error": {"type": "api_error", "message": error or "Unknown upstream error"},
            }))
            return events

        usage = self.state.usage or {}
        output_tokens = usage.get("completion_tokens") or 0
        events.append(format_sse_event("message_delta", {
            "type": "message_delta",
            "delta": {"stop_reason": "end_turn", "stop_sequence": None},
            "usage": {"output_tokens": output_tokens},
        }))
        events.append(format_sse_event("message_stop", {"type": "message_stop"}))
        events.append(DONE_SENTINEL)

        logger.debug(f"[{self.request_id}] Stream finalized ({reason}), output_tokens={output_tokens}")
        if self.on_usage is not None and self.state.usage is not None:
            self.on_usage(self.state.usage)
        return events

    def cancel(self) -> None:
        """Client went away: stop without writing anything else."""
        self.state.closed = True

    def ping_if_idle(self, now: Optional[float] = None) -> List[str]:
        if self.state.finalized or self.state.closed:
            return []
        now = time.monotonic() if now is None else now
        if now - self.state.last_activity > self.ping_interval:
            return [self._ping()]
        return []

    async def translate(self, byte_stream: AsyncIterator[Union[str, bytes]]) -> AsyncIterator[str]:
        """Drive the translation over an upstream byte stream.

        While waiting for the next chunk the loop wakes every
        ``ping_interval`` seconds to send keep-alive pings; the pending read is
        never cancelled by those wake-ups.
        """
        iterator = byte_stream.__aiter__()
        pending: Optional[asyncio.Future] = None
        try:
            for event in self.start():
                yield event

            while not self.state.finalized:
                if pending is None:
                    pending = asyncio.ensure_future(_read_next(iterator))
                done, _ = await asyncio.wait({pending}, timeout=self.ping_interval)
                if not done:
                    for event in self.ping_if_idle():
                        yield event
                    continue

                task, pending = pending, None
                try:
                    chunk = task.result()
                except Exception as e:
                    logger.error(f"[{self.request_id}] Upstream read failed: {e}")
                    for event in self.finalize("error", str(e) or type(e).__name__):
                        yield event
                    break

                if chunk is _EOF:
                    for event in self.finish():
                        yield event
                    break

                for event in self.feed(chunk):
                    yield event
        except (GeneratorExit, asyncio.CancelledError):
            logger.info(f"[{self.request_id}] Client disconnected, stopping stream")
            self.cancel()
            raise
        finally:
            if pending is not None and not pending.done():
                pending.cancel()

    # Upstream frames -----------------------------------------------------

    def _handle_data(self, data: str) -> List[str]:
        data = data.strip()
        if not data:
            return []
        if data == "[DONE]":
            return self.finalize("done")

        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"[{self.request_id}] Skipping undecodable SSE data: {data[:200]}")
            return []
        if not isinstance(frame, dict):
            return []

        if isinstance(frame.get("usage"), dict):
            self.state.usage = frame["usage"]

        choices = frame.get("choices")
        if frame.get("error") and not choices:
            error = frame["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            return self.finalize("error", message)

        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        choice = choices[0]
        delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}

        events: List[str] = []
        content = delta.get("content")
        if isinstance(content, str) and content:
            events.extend(self._text_delta(content))

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for tool_call in tool_calls:
                if isinstance(tool_call, dict):
                    events.extend(self._tool_delta(tool_call))

        if choice.get("finish_reason") == "tool_calls":
            events.extend(self._close_tool_blocks())

        return events

    def _text_delta(self, text: str) -> List[str]:
        events: List[str] = []
        if self.state.text_block_index is None:
            # One block open at a time: tool blocks end before new text
            events.extend(self._close_tool_blocks())
            index = self._allocate_index()
            self.state.text_block_index = index
            events.append(format_sse_event("content_block_start", {
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "text", "text": ""},
            }))
        events.append(format_sse_event("content_block_delta", {
            "type": "content_block_delta",
            "index": self.state.text_block_index,
            "delta": {"type": "text_delta", "text": text},
        }))
        self.state.last_activity = time.monotonic()
        return events

    def _tool_delta(self, tool_call: Dict[str, Any]) -> List[str]:
        upstream_index = tool_call.get("index")
        if not isinstance(upstream_index, int):
            upstream_index = 0
        function = tool_call.get("function") if isinstance(tool_call.get("function"), dict) else {}
        arguments = function.get("arguments")

        block = self.state.tool_blocks.get(upstream_index)
        if block is None:
            block = ToolBlockState()
            self.state.tool_blocks[upstream_index] = block
        if block.closed:
            if arguments:
                logger.debug(
                    f"[{self.request_id}] [STREAM_TOOL] Dropping arguments for closed tool at index {upstream_index}"
                )
            return []

        if not block.started:
            if tool_call.get("id"):
                block.id = tool_call["id"]
            if function.get("name"):
                block.name = function["name"]

        events: List[str] = []
        if not block.started and block.name:
            events.extend(self._close_text_block())
            block.id = block.id or generate_tool_id()
            block.block_index = self._allocate_index()
            block.started = True
            logger.debug(
                f"[{self.request_id}] [STREAM_TOOL] Starting tool_use {block.name} "
                f"(upstream index {upstream_index}) at block {block.block_index}"
            )
            events.append(format_sse_event("content_block_start", {
                "type": "content_block_start",
                "index": block.block_index,
                "content_block": {"type": "tool_use", "id": block.id, "name": block.name, "input": {}},
            }))
            pending, block.pending_arguments = block.pending_arguments, []
            for fragment in pending:
                events.append(self._input_json_delta(block, fragment))

        if isinstance(arguments, str) and arguments:
            if block.started:
                events.append(self._input_json_delta(block, arguments))
            else:
                block.pending_arguments.append(arguments)

        return events

    # Helpers -------------------------------------------------------------

    def _input_json_delta(self, block: ToolBlockState, fragment: str) -> str:
        self.state.last_activity = time.monotonic()
        return format_sse_event("content_block_delta", {
            "type": "content_block_delta",
            "index": block.block_index,
            "delta": {"type": "input_json_delta", "partial_json": fragment},
        })

    def _allocate_index(self) -> int:
        index = self.state.next_block_index
        self.state.next_block_index += 1
        return index

    def _close_text_block(self) -> List[str]:
        if self.state.text_block_index is None:
            return []
        index = self.state.text_block_index
        self.state.text_block_index = None
        return [format_sse_event("content_block_stop", {"type": "content_block_stop", "index": index})]

    def _close_tool_blocks(self) -> List[str]:
        open_blocks = sorted(
            (block for block in self.state.tool_blocks.values() if block.started and not block.closed),
            key=lambda block: block.block_index,
        )
        events: List[str] = []
        for block in open_blocks:
            block.closed = True
            events.append(format_sse_event("content_block_stop", {
                "type": "content_block_stop",
                "index": block.block_index,
            }))
        return events

    def _ping(self) -> str:
        return format_sse_event("ping", {"type": "ping"})


def replay_response_events(response: Dict[str, Any]) -> List[str]:
    """Render a complete Anthropic message as the equivalent event stream.

    Used when the backend answered a streaming request with a single JSON body.
    """
    message_start = dict(response)
    message_start["content"] = []
    message_start["stop_reason"] = None
    usage = response.get("usage") or {}

    events = [
        format_sse_event("message_start", {"type": "message_start", "message": message_start}),
        format_sse_event("ping", {"type": "ping"}),
    ]

    for index, block in enumerate(response.get("content") or []):
        if block.get("type") == "tool_use":
            start_block = {"type": "tool_use", "id": block.get("id"), "name": block.get("name"), "input": {}}
            arguments = block.get("input", {})
            delta = {
                "type": "input_json_delta",
                "partial_json": arguments if isinstance(arguments, str) else json.dumps(arguments),
            }
        else:
            start_block = {"type": "text", "text": ""}
            delta = {"type": "text_delta", "text": block.get("text", "")}

        events.append(format_sse_event("content_block_start", {
            "type": "content_block_start", "index": index, "content_block": start_block,
        }))
        events.append(format_sse_event("content_block_delta", {
            "type": "content_block_delta", "index": index, "delta": delta,
        }))
        events.append(format_sse_event("content_block_stop", {"type": "content_block_stop", "index": index}))

    events.append(format_sse_event("message_delta", {
        "type": "message_delta",
        "delta": {"stop_reason": response.get("stop_reason", "end_turn"), "stop_sequence": None},
        "usage": {"output_tokens": usage.get("output_tokens", 0)},
    }))
    events.append(format_sse_event("message_stop", {"type": "message_stop"}))
    events.append(DONE_SENTINEL)
    return events
