"""
Newline-delimited JSON framing.

Each message is one UTF-8 JSON record terminated by ``\\n``. The decoder
reassembles records split across reads and splits reads carrying
several records.
"""

import json
from collections.abc import Callable
from typing import Any

FRAME_DELIMITER = b"\n"


def encode_frame(message: dict[str, Any]) -> bytes:
    """Serialize a message as one newline-terminated record."""
    # json.dumps escapes control characters, so the record holds no raw newline
    return json.dumps(message, separators=(",", ":")).encode("utf-8") + FRAME_DELIMITER


class FrameDecoder:
    """Incremental decoder turning raw chunks into complete frames.

    Usage:
        decoder = FrameDecoder(max_frame_bytes=1024)
        for frame in decoder.feed(chunk):
            handle(frame)
    """

    def __init__(
        self,
        max_frame_bytes: int = 16 * 1024 * 1024,
        on_oversized: Callable[[int], None] | None = None,
    ) -> None:
        """
        Args:
            max_frame_bytes: Largest accepted record, excluding the delimiter.
            on_oversized: Called with the observed size of each dropped record.
        """
        self.max_frame_bytes = max_frame_bytes
        self._on_oversized = on_oversized
        self._buffer = bytearray()
        # True while dropping the remainder of an oversized record
        self._discarding = False

    @property
    def buffered(self) -> int:
        """Number of bytes held for an incomplete frame."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add a chunk and return every frame it completes.

        Blank records are skipped. An oversized record is dropped up to
        its terminating newline.
        """
        frames: list[bytes] = []
        self._buffer.extend(chunk)

        while True:
            index = self._buffer.find(FRAME_DELIMITER)
            if index < 0:
                break
            record = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            if self._discarding:
                self._discarding = False
                continue
            if len(record) > self.max_frame_bytes:
                self._report_oversized(len(record))
                continue
            if record.strip():
                frames.append(record)

        if len(self._buffer) > self.max_frame_bytes:
            if not self._discarding:
                self._report_oversized(len(self._buffer))
            self._discarding = True
            self._buffer.clear()

        return frames

    def _report_oversized(self, size: int) -> None:
        if self._on_oversized is not None:
            self._on_oversized(size)
