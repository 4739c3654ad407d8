"""
Stream Normalizer

Turns adapter RawEvents into display-ready StreamChunks.

Reasoning models may open their answer with an inline reasoning segment
closed by ``</think>`` (the opening marker is sometimes missing). Text is
held back until the closing marker shows up; everything before it is
dropped and everything after it streams through untouched. A stream that
never closes a reasoning segment is flushed whole at the end.
"""

import logging
from typing import Any, AsyncIterator, Dict, List

from ..common.llm_utils import REASONING_CLOSE
from ..common.schemas import StreamChunk
from .providers.base import EventKind, RawEvent

logger = logging.getLogger("briefchat.responder.stream_normalizer")


class StreamNormalizer:
    """
    Stateful reasoning filter for one answer stream.

    Use ``feed`` / ``finish`` for step-wise processing, or ``normalize`` to
    wrap an adapter stream. Tool-call fragments are collected in
    ``tool_calls`` and never reach the text stream.
    """

    def __init__(self, close_marker: str = REASONING_CLOSE):
        self._close_marker = close_marker
        self.has_finished_thinking = False
        self._accumulator = ""
        self.tool_calls: List[Dict[str, Any]] = []
        self.reasoning_chars = 0

    def feed(self, delta: str) -> List[StreamChunk]:
        """Process one text delta; returns the chunks it releases (0 or 1)."""
        if not delta:
            return []

        if self.has_finished_thinking:
            return [StreamChunk(text=delta)]

        self._accumulator += delta
        index = self._accumulator.find(self._close_marker)
        if index < 0:
            return []

        self.has_finished_thinking = True
        self.reasoning_chars += index
        remainder = self._accumulator[index + len(self._close_marker):]
        self._accumulator = ""
        return [StreamChunk(text=remainder)] if remainder else []

    def finish(self) -> List[StreamChunk]:
        """End of stream: release held text if no closing marker ever came."""
        if self.has_finished_thinking or not self._accumulator:
            return []
        held, self._accumulator = self._accumulator, ""
        return [StreamChunk(text=held)]

    def handle(self, event: RawEvent) -> List[StreamChunk]:
        if event.kind == EventKind.TEXT:
            return self.feed(event.text)
        if event.kind == EventKind.TOOL_CALL:
            self.tool_calls.append(event.data or {})
            return []
        if event.kind == EventKind.REASONING:
            self.reasoning_chars += len(event.text)
            return []
        raise ValueError(f"Unhandled event kind: {event.kind!r}")

    async def normalize(self, events: AsyncIterator[RawEvent]) -> AsyncIterator[StreamChunk]:
        """
        Wrap an adapter stream.

        Closing this generator closes ``events`` as well, which releases the
        upstream connection.
        """
        try:
            async for event in events:
                for chunk in self.handle(event):
                    yield chunk
            for chunk in self.finish():
                yield chunk
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if self.tool_calls:
            logger.info("Stream requested %d tool call fragment(s)", len(self.tool_calls))
