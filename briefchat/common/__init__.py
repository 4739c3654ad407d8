"""
Briefchat Common Module

Shared infrastructure for the retriever and responder.
"""

from .config import BriefchatConfig, load_config
from .corpus_store import CorpusStore
from .embedding_service import EmbeddingService
from .errors import (
    BriefchatError,
    ConfigError,
    ParseError,
    ProviderStreamError,
    QuotaExceededError,
    RetrievalError,
    TemplateNotFoundError,
)
from .llm_client import LLMClient

__all__ = [
    "BriefchatConfig",
    "load_config",
    "CorpusStore",
    "EmbeddingService",
    "LLMClient",
    "BriefchatError",
    "ConfigError",
    "ParseError",
    "ProviderStreamError",
    "QuotaExceededError",
    "RetrievalError",
    "TemplateNotFoundError",
]
