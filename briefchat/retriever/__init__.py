"""
Retriever - Intent Routing and Corpus Retrieval

Decides whether a query needs corpus evidence and, when it does, finds it.

Key Components:
- IntentRouter: Classifies a query as DIRECT / RAG_LOCAL / SEARCH_WEB
- CorpusRetriever: Hybrid search over the summarized-article corpus
- Reranker: LLM selection when candidates exceed the context budget

Pipeline:
1. Classify the query (heuristics first, then a cheap model)
2. For RAG_LOCAL only: embed the query and run hybrid search
3. Keep candidates scoring above the relevance threshold
4. Rerank down to the answering model's budget when needed
"""

from .intent_router import IntentRouter
from .reranker import Reranker
from .searcher import CorpusRetriever

__all__ = [
    "IntentRouter",
    "Reranker",
    "CorpusRetriever",
]
