"""
Conversation Schemas

A chat turn is an ordered list of messages whose last entry is the active
user query. Messages are immutable once built.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class Role(str, Enum):
    """Standard message roles"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Intent(str, Enum):
    """What kind of answer a query needs"""
    DIRECT = "DIRECT"  # Chat, greetings, puzzles, questions about the assistant
    RAG_LOCAL = "RAG_LOCAL"  # Questions answerable from the article corpus
    SEARCH_WEB = "SEARCH_WEB"  # Real-time facts the corpus cannot hold


# ============================================================================
# Models
# ============================================================================

class ConversationMessage(BaseModel):
    """
    One message of a conversation.

    ``role`` is kept as the caller sent it (lowercased) so that provider
    adapters can apply their own role mapping; ``Role`` lists the values
    every provider understands.
    """
    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="user | assistant | system (others are mapped by adapters)")
    content: str = Field(default="")

    @field_validator("role")
    @classmethod
    def _normalize_role(cls, value: str) -> str:
        return (value or "").strip().lower()

    @field_validator("content", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER.value


class RouterResult(BaseModel):
    """Outcome of intent classification"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    intent: Intent
    reasoning: str = ""
    modified_query: Optional[str] = Field(default=None, alias="modifiedQuery")


class StreamChunk(BaseModel):
    """One display-ready unit of the answer stream"""
    model_config = ConfigDict(frozen=True)

    text: str


class ChatRequest(BaseModel):
    """Input of one orchestration call"""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ConversationMessage]
    use_search: bool = Field(default=True, alias="useSearch")
    model: str = ""
    is_small_talk_mode: bool = Field(default=False, alias="isSmallTalkMode")


def last_user_query(messages: List[ConversationMessage]) -> str:
    """Return the active query, or raise if the turn does not end with one."""
    if not messages:
        raise ValueError("Message is required")
    last = messages[-1]
    if not last.is_user or not last.content.strip():
        raise ValueError("Message is required")
    return last.content
