"""Line-oriented watcher for transfer output.

A SentinelStream drains an asyncio stream in a background task and fires a
one-shot event the first time the sentinel text appears, or when the stream
ends without it. The transfer behind the stream keeps running; draining
continues until EOF so the producer never blocks on a full pipe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


class SentinelStream:
    def __init__(
        self,
        reader: asyncio.StreamReader,
        sentinel: str,
        *,
        on_line: Callable[[str], None] | None = None,
    ) -> None:
        self._reader = reader
        self._sentinel = sentinel
        self._on_line = on_line
        self.signalled = asyncio.Event()
        self.sentinel_seen = False
        self.lines_read = 0

    async def drain(self) -> None:
        """Read until EOF. Sets ``signalled`` on the sentinel or at EOF, whichever is first."""
        try:
            while True:
                raw = await self._reader.readline()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                self.lines_read += 1
                if self._on_line is not None:
                    self._on_line(line)
                if not self.sentinel_seen and self._sentinel in line:
                    self.sentinel_seen = True
                    self.signalled.set()
        finally:
            self.signalled.set()

    async def wait(self) -> bool:
        """Block until signalled; True if the sentinel was seen."""
        await self.signalled.wait()
        return self.sentinel_seen
