"""
Briefchat Schemas

Conversation, routing and article types shared by the retriever and responder.
"""

from .chat import (
    Role,
    ConversationMessage,
    Intent,
    RouterResult,
    StreamChunk,
    ChatRequest,
    last_user_query,
)
from .article import RetrievedArticle, Verdict

__all__ = [
    "Role",
    "ConversationMessage",
    "Intent",
    "RouterResult",
    "StreamChunk",
    "ChatRequest",
    "last_user_query",
    "RetrievedArticle",
    "Verdict",
]
