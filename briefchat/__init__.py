"""
Briefchat

Conversational access to a corpus of summarized articles.

Philosophy:
- Decide first, retrieve second: one intent per turn gates both retrieval and prompt
- Local articles are primary evidence; answers cite them as [N]
- Reasoning segments emitted by models never reach the reader
- Request-scoped pipeline: nothing is cached or persisted between turns

Usage:
    from briefchat.common import load_config, EmbeddingService, CorpusStore
    from briefchat.retriever import IntentRouter, CorpusRetriever, Reranker
    from briefchat.responder import ChatOrchestrator, StreamNormalizer
"""

__version__ = "0.1.0"
