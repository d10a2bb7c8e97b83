"""Newline-delimited JSON-RPC channel over a pair of text streams (stdin/stdout)."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import threading
from typing import Any, Dict, Optional, TextIO

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Raised when channel communication fails."""


class StdioChannel:
    """
    Bidirectional message channel over two text streams.

    One JSON message per line in each direction. Reads happen in a worker
    thread so a blocked ``readline`` never stalls the event loop; writes are
    serialized with a lock because log notifications can interleave with
    responses.
    """

    def __init__(self, reader: Optional[TextIO] = None, writer: Optional[TextIO] = None):
        self._reader = reader or sys.stdin
        self._writer = writer or sys.stdout
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def receive(self) -> Optional[str]:
        """Return the next non-blank line, or ``None`` at end of stream."""
        while not self._closed:
            line = await asyncio.to_thread(self._reader.readline)
            if not line:
                return None
            line = line.strip()
            if line:
                return line
        return None

    def send(self, message: Dict[str, Any]) -> None:
        if self._closed:
            raise ChannelError("Channel is closed")

        line = json.dumps(message, ensure_ascii=False) + "\n"
        with self._lock:
            try:
                self._writer.write(line)
                self._writer.flush()
            except (BrokenPipeError, OSError, ValueError) as exc:
                raise ChannelError(f"Channel write failed: {exc}")

    def close(self) -> None:
        self._closed = True
