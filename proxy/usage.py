"""
Session usage bookkeeping.

Keeps running totals across completed requests and optionally writes a small
JSON snapshot per port for status-line tools.
"""
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SessionUsageTracker:
    """Records the final usage of each completed response."""

    def __init__(self, port: int, token_file_dir: Optional[str] = None, write_file: bool = False):
        self.port = port
        self.write_file = write_file
        self.token_file = Path(token_file_dir or "/tmp") / f"proxy-tokens-{port}.json"
        self.total_cost = 0.0
        self.last_snapshot: Optional[Dict[str, Any]] = None

    def record(self, model: str, usage: Dict[str, Any], context_window: int) -> Dict[str, Any]:
        """Record one response's usage and return the resulting snapshot.

        Token counts are reported exactly as the backend sent them.
        """
        input_tokens = usage.get("prompt_tokens") or 0
        output_tokens = usage.get("completion_tokens") or 0
        cost = usage.get("cost")
        if isinstance(cost, (int, float)):
            self.total_cost += cost

        total = input_tokens + output_tokens
        if context_window > 0:
            left_percent = max(0, min(100, round((context_window - total) / context_window * 100)))
        else:
            left_percent = 100

        snapshot = {
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": total,
            "total_cost": self.total_cost,
            "context_window": context_window,
            "context_left_percent": left_percent,
            "updated_at": int(time.time() * 1000),
        }
        self.last_snapshot = snapshot
        logger.debug(f"[USAGE] {model}: in={input_tokens} out={output_tokens} left={left_percent}%")

        if self.write_file:
            self._write_snapshot(snapshot)
        return snapshot

    def _write_snapshot(self, snapshot: Dict[str, Any]) -> None:
        try:
            tmp_path = self.token_file.with_suffix(".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot, f)
            os.replace(tmp_path, self.token_file)
        except OSError as e:
            logger.warning(f"[USAGE] Failed to write token file {self.token_file}: {e}")
