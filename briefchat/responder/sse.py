"""
Server-Sent Events decoding for raw HTTP streams.

Network chunks do not line up with event boundaries; the decoder owns the
partial-line buffer so callers only ever see complete ``data:`` payloads.
"""

import codecs
import json
import logging
from typing import Any, Dict, List

logger = logging.getLogger("briefchat.responder.sse")

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """
    Incremental decoder for ``data: {json}`` event streams.

    ``feed`` accepts raw bytes in arbitrary splits and returns the JSON
    payloads of every line completed so far. Blank lines, non-data fields
    and the ``[DONE]`` sentinel are skipped; a line whose JSON does not
    parse is logged and dropped without affecting the rest of the stream.
    """

    def __init__(self):
        self._buffer = ""
        # Multi-byte characters can straddle chunk boundaries
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False
        self.skipped = 0

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> List[Dict[str, Any]]:
        """Parse whatever is left once the stream has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        lines, self._buffer = [self._buffer], ""
        return self._parse_lines(lines)

    def _parse_lines(self, lines: List[str]) -> List[Dict[str, Any]]:
        events = []
        for line in lines:
            payload = self._parse_line(line)
            if payload is not None:
                events.append(payload)
        return events

    def _parse_line(self, line: str):
        trimmed = line.strip()
        if not trimmed or not trimmed.startswith("data:"):
            return None

        data = trimmed[len("data:"):].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            self.skipped += 1
            logger.warning("Skipping malformed SSE frame (%s): %r", e, data[:120])
            return None

        if not isinstance(payload, dict):
            self.skipped += 1
            return None
        return payload
