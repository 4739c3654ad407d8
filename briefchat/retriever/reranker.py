"""
Reranker

When hybrid search returns more candidates than the answering model can
take, a small LLM picks the most relevant, least redundant subset.

Failure policy: a quota error retries once on a cheaper fallback model;
anything else degrades to the first ``top_k`` candidates in search order.
Reranking never fails the chat turn.
"""

import logging
from typing import List, Optional, Sequence

from ..common.errors import is_quota_error
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import RetrievedArticle

logger = logging.getLogger("briefchat.retriever.reranker")


RERANK_PROMPT = """You are a professional news analyst. Based on the user's question "{query}", select the most relevant, most valuable and most timely articles from the {count} articles below (return at most {top_k}).
Requirements:
1. Respond in strict JSON: {{"selected_ids": ["id1", "id2", ...]}}
2. If several articles cover essentially the same story, keep only the highest-quality or most recent one.
3. Prefer articles with a more recent Date.

Candidate articles:
{articles}"""


class Reranker:
    """
    LLM-based relevance and diversity filter.

    Uses a cheap, fast model in JSON mode; the fallback model is only
    tried when the primary one is out of quota.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        model: str = "gemini-2.5-flash-lite-preview-09-2025",
        fallback_model: str = "gemini-flash-lite-latest",
    ):
        self._llm = llm_client
        self._model = model
        self._fallback_model = fallback_model

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    async def rerank(
        self,
        candidates: Sequence[RetrievedArticle],
        query: str,
        top_k: int,
    ) -> List[str]:
        """
        Select up to ``top_k`` candidate ids.

        Args:
            candidates: Filtered hybrid-search candidates, in search order
            query: The user query
            top_k: Context budget of the answering model

        Returns:
            Selected ids, a subset of the candidate ids (unknown ids dropped)
        """
        if not candidates:
            return []

        if not self.is_available:
            logger.warning("Rerank model unavailable, truncating to %d", top_k)
            return self._truncate(candidates, top_k)

        prompt = RERANK_PROMPT.format(
            query=query,
            count=len(candidates),
            top_k=top_k,
            articles=self._format_candidates(candidates),
        )

        model = self._model
        while True:
            try:
                raw = await self._llm.generate(prompt, model=model, json_mode=True)
                selected = parse_llm_json(raw).get("selected_ids") or []
                return self._select(selected, candidates, top_k)
            except Exception as e:
                if is_quota_error(e) and model != self._fallback_model:
                    logger.warning(
                        "%s quota exceeded, retrying with %s for query %r",
                        model, self._fallback_model, query[:20],
                    )
                    model = self._fallback_model
                    continue
                logger.error("Rerank failed | Model: %s | Query: %r | %s", model, query, e)
                return self._truncate(candidates, top_k)

    def _format_candidates(self, candidates: Sequence[RetrievedArticle]) -> str:
        """One block per candidate: id, date, source, title, category, keywords, summary"""
        blocks = []
        for a in candidates:
            keywords = ", ".join(a.keywords[:5])
            blocks.append(
                f"ID: {a.id} | Date: {a.published or 'N/A'} | Source: {a.source_name or 'Unknown'}\n"
                f"Title: {a.title}\n"
                f"Category: {a.category or 'N/A'} | Keywords: [{keywords}]\n"
                f"Summary: {a.summary or 'N/A'}"
            )
        return "\n---\n".join(blocks)

    def _select(
        self,
        selected: Sequence,
        candidates: Sequence[RetrievedArticle],
        top_k: int,
    ) -> List[str]:
        """Keep known ids only, deduplicated, capped at top_k."""
        known = {a.id for a in candidates}
        result = []
        for raw_id in selected:
            article_id = str(raw_id)
            if article_id in known and article_id not in result:
                result.append(article_id)
        return result[:top_k]

    @staticmethod
    def _truncate(candidates: Sequence[RetrievedArticle], top_k: int) -> List[str]:
        return [a.id for a in candidates[:top_k]]
