"""Incremental parser for text/event-stream payloads."""
import codecs
from dataclasses import dataclass
from typing import List, Optional, Union


@dataclass
class SSEEvent:
    event: Optional[str]
    data: str


class SSEParser:
    """Line-oriented SSE parser.

    Each ``data:`` line is reported as soon as its line is complete, tagged
    with the most recent ``event:`` name. Bytes are decoded incrementally so a
    multi-byte character split across chunks is never corrupted.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._current_event: Optional[str] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[str, bytes]) -> List[SSEEvent]:
        """Consume raw chunk text and return the data lines it completed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if not chunk:
            return []

        self._buffer += chunk
        events: List[SSEEvent] = []

        while True:
            newline_idx = self._buffer.find("\n")
            if newline_idx == -1:
                break

            line = self._buffer[:newline_idx]
            self._buffer = self._buffer[newline_idx + 1:]
            event = self._parse_line(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> List[SSEEvent]:
        """Parse whatever is left in the buffer (used at stream end)."""
        self._buffer += self._decoder.decode(b"", final=True)
        remaining = self._buffer
        self._buffer = ""
        self._current_event = None
        if not remaining:
            return []
        event = self._parse_line(remaining)
        return [event] if event is not None else []

    def _parse_line(self, line: str) -> Optional[SSEEvent]:
        # Trim CR from Windows-style endings
        if line.endswith("\r"):
            line = line[:-1]

        if line == "":
            self._current_event = None
            return None

        if line.startswith(":"):
            # Comment line, e.g. ": OPENROUTER PROCESSING"
            return None

        if line.startswith("event:"):
            self._current_event = line[6:].strip()
            return None

        if line.startswith("data:"):
            data_value = line[5:]
            if data_value.startswith(" "):
                data_value = data_value[1:]
            return SSEEvent(event=self._current_event, data=data_value)

        return None
