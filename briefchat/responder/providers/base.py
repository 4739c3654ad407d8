"""
Base Provider Adapter

Abstract base class for upstream chat-completion providers.
Every adapter turns a message list into the same stream of RawEvents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from ...common.schemas import ConversationMessage


class EventKind(str, Enum):
    """What a raw upstream delta carries"""
    TEXT = "text"
    TOOL_CALL = "tool_call"
    REASONING = "reasoning"  # Out-of-band reasoning (e.g. reasoning_content)


@dataclass
class RawEvent:
    """One delta as produced by an adapter, before normalization"""
    kind: EventKind
    text: str = ""
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def text_delta(cls, text: str) -> "RawEvent":
        return cls(kind=EventKind.TEXT, text=text)


@dataclass
class StreamOptions:
    """Per-call options for an adapter"""
    model: str
    use_search: bool = False
    key_alias: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each adapter must implement:
    - stream: Send the messages and yield RawEvents as they arrive

    Adapters raise ProviderStreamError (or QuotaExceededError) for upstream
    failures and never retry.
    """

    def __init__(self, provider_name: str):
        """
        Initialize adapter.

        Args:
            provider_name: Name used in logs and error messages
        """
        self.provider_name = provider_name

    @abstractmethod
    def stream(
        self,
        messages: Sequence[ConversationMessage],
        options: StreamOptions,
    ) -> AsyncIterator[RawEvent]:
        """
        Stream a completion.

        Args:
            messages: Assembled messages, system entries first, active turn last
            options: Model, search flag and credential alias

        Returns:
            Async iterator of RawEvents in upstream order
        """
        pass
