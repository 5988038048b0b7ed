"""Line reader that survives arbitrary chunk boundaries."""

from __future__ import annotations

from typing import Iterable, Iterator

# Longest line kept; SSE data lines from chat providers stay far below this.
DEFAULT_MAX_LINE = 16 * 1024


class LineReader:
    """Yield newline-delimited records from a stream of byte chunks.

    Chunks may split a line anywhere, including between ``\\r`` and ``\\n``
    or inside a multi-byte UTF-8 sequence; the sequence of lines returned is
    the same as if the whole body had arrived at once.

    A line longer than ``max_line`` bytes is cut to its first ``max_line``
    bytes and the rest of it, up to the next ``\\n``, is dropped.
    """

    def __init__(self, source: Iterable[bytes], max_line: int = DEFAULT_MAX_LINE) -> None:
        if max_line <= 0:
            raise ValueError("max_line must be positive")
        self._source = iter(source)
        self._max_line = max_line
        self._buf = bytearray()
        self._line = bytearray()
        self._truncated = False
        self._eof = False

    def _append(self, data: bytes | bytearray) -> None:
        room = self._max_line - len(self._line)
        if len(data) > room:
            self._truncated = True
            data = data[:room]
        if data:
            self._line += data

    def _take(self, terminated: bool) -> bytes:
        line = bytes(self._line)
        if terminated and not self._truncated and line.endswith(b"\r"):
            line = line[:-1]
        self._line.clear()
        self._truncated = False
        return line

    def next_line(self) -> bytes | None:
        """Return the next line without its terminator, or ``None`` at EOF."""
        while True:
            nl = self._buf.find(b"\n")
            if nl >= 0:
                self._append(self._buf[:nl])
                del self._buf[:nl + 1]
                return self._take(terminated=True)

            if self._buf:
                self._append(self._buf)
                self._buf.clear()

            if self._eof:
                return None
            chunk = next(self._source, None)
            if chunk is None:
                self._eof = True
                if self._line or self._truncated:
                    return self._take(terminated=False)
                return None
            self._buf += chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            line = self.next_line()
            if line is None:
                return
            yield line
