"""
MCPWrap Line Framer

Reassembles newline-delimited messages from arbitrarily chunked worker output.
"""

from __future__ import annotations

from mcpwrap.workers.errors import FrameOverflowError

DEFAULT_MAX_BUFFER_BYTES = 10 * 1024 * 1024


class LineFramer:
    """
    Splits a byte stream into complete lines.

    Chunks may end anywhere, including inside a multi-byte UTF-8 sequence,
    so splitting happens on bytes and only complete lines are decoded.
    """

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        self.max_buffer_bytes = max_buffer_bytes
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        """
        Add a chunk and return every line it completed.

        Blank lines are skipped. The trailing fragment stays buffered.

        Raises:
            FrameOverflowError: If the unterminated fragment grows past the limit
        """
        self._buffer.extend(chunk)

        if b"\n" in chunk:
            *complete, rest = self._buffer.split(b"\n")
            self._buffer = bytearray(rest)
        else:
            complete = []

        if len(self._buffer) > self.max_buffer_bytes:
            self._buffer.clear()
            raise FrameOverflowError(self.max_buffer_bytes)

        lines = []
        for raw in complete:
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                lines.append(line)
        return lines

    def reset(self) -> None:
        """Drop any buffered fragment."""
        self._buffer.clear()

    @property
    def buffered_bytes(self) -> int:
        return len(self._buffer)
