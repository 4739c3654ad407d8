"""
Corpus Retriever

Searches the summarized-article corpus for evidence.
Pipeline: embed query → hybrid search → similarity filter → rerank (when over budget).
Returns RetrievedArticle lists ready for prompt assembly.
"""

import logging
from typing import List, Optional

from ..common.corpus_store import CorpusStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import RetrievalError
from ..common.schemas import RetrievedArticle
from .reranker import Reranker

logger = logging.getLogger("briefchat.retriever.searcher")


class CorpusRetriever:
    """
    Retrieves grounding articles for one query.

    Features:
    - Hybrid (lexical + vector) search done by the store
    - Relevance threshold on the hybrid score
    - LLM rerank only when candidates exceed the answering model's budget
    - Naive truncation whenever the rerank yields nothing usable
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        store: CorpusStore,
        reranker: Optional[Reranker] = None,
        match_count: int = 50,
        similarity_threshold: float = 0.5,
    ):
        """
        Initialize retriever.

        Args:
            embedding_service: For embedding queries
            store: Corpus store exposing hybrid search
            reranker: Reranker for over-budget candidate sets
            match_count: Candidate cap for the hybrid search
            similarity_threshold: Candidates must score strictly above this
        """
        self._embedding = embedding_service
        self._store = store
        self._reranker = reranker
        self._match_count = match_count
        self._threshold = similarity_threshold

    async def retrieve(self, query: str, top_k: int = 10) -> List[RetrievedArticle]:
        """
        Retrieve articles for a query.

        Args:
            query: Retrieval query (the router's rewrite or the raw query)
            top_k: Context budget of the answering model

        Returns:
            At most ``top_k`` articles, in hybrid-search order

        Raises:
            RetrievalError: embedding or search failed
        """
        candidates = await self._search(query)
        logger.info("Hybrid search: %d candidates above %.2f", len(candidates), self._threshold)

        if len(candidates) <= top_k:
            return candidates

        selected_ids = await self._rerank(candidates, query, top_k)
        selected = set(selected_ids)
        final = [a for a in candidates if a.id in selected]

        if not final:
            logger.warning("Rerank selected no known ids, truncating to %d", top_k)
            return candidates[:top_k]

        logger.info("Rerank kept %d of %d candidates", len(final), len(candidates))
        return final

    async def _search(self, query: str) -> List[RetrievedArticle]:
        """Embed and search; any failure is fatal for the turn."""
        try:
            embedding = await self._embedding.embed(query, purpose="query")
            results = await self._store.hybrid_search(query, embedding, self._match_count)
        except Exception as e:
            logger.error("Retrieval failed for %r: %s", query[:50], e)
            raise RetrievalError(f"Retrieval failed: {e}") from e

        return [a for a in results if a.similarity > self._threshold]

    async def _rerank(
        self,
        candidates: List[RetrievedArticle],
        query: str,
        top_k: int,
    ) -> List[str]:
        if self._reranker is None:
            return [a.id for a in candidates[:top_k]]
        try:
            return await self._reranker.rerank(candidates, query, top_k)
        except Exception as e:
            logger.warning("Reranker raised, truncating to %d: %s", top_k, e)
            return [a.id for a in candidates[:top_k]]
