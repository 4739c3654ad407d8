"""
Provider Adapters

Upstream chat-completion providers behind one interface.
Each adapter converts an assembled message list into a stream of RawEvents.

Available Adapters:
- GeminiAdapter: google-genai chat sessions with Google Search grounding
- SiliconFlowAdapter: OpenAI-style endpoint over a raw SSE stream
"""

from .base import EventKind, ProviderAdapter, RawEvent, StreamOptions
from .gemini import GeminiAdapter
from .siliconflow import SiliconFlowAdapter, normalize_messages

__all__ = [
    "EventKind",
    "ProviderAdapter",
    "RawEvent",
    "StreamOptions",
    "GeminiAdapter",
    "SiliconFlowAdapter",
    "normalize_messages",
]
