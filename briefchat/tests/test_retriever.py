"""
Tests for Corpus Retrieval

Tests the similarity filter, the rerank gate, reranker fallbacks and the
truncation policy.
"""

import pytest
from unittest.mock import AsyncMock, Mock


def _articles(similarities):
    from briefchat.common.schemas import RetrievedArticle
    return [
        RetrievedArticle(
            id=f"a{i}",
            title=f"Article {i}",
            source_name="Example Weekly",
            published=f"2025-01-{(i % 28) + 1:02d}",
            keywords=["k1", "k2", "k3", "k4", "k5", "k6"],
            summary=f"Summary {i}",
            similarity=s,
        )
        for i, s in enumerate(similarities)
    ]


def _llm(response=None, side_effect=None):
    llm = Mock()
    llm.is_available = True
    llm.generate = AsyncMock(return_value=response, side_effect=side_effect)
    return llm


class TestReranker:
    """Tests for Reranker"""

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        from briefchat.retriever.reranker import Reranker

        llm = _llm('{"selected_ids": []}')
        assert await Reranker(llm_client=llm).rerank([], "query", 10) == []
        llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_selects_known_ids_only(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm('{"selected_ids": ["a3", "ghost", "a1", "a3"]}')

        selected = await Reranker(llm_client=llm).rerank(candidates, "query", 10)

        assert selected == ["a3", "a1"]

    @pytest.mark.asyncio
    async def test_caps_at_top_k(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm('{"selected_ids": ["a0", "a1", "a2", "a3"]}')

        assert await Reranker(llm_client=llm).rerank(candidates, "query", 2) == ["a0", "a1"]

    @pytest.mark.asyncio
    async def test_numeric_ids_are_matched(self):
        from briefchat.common.schemas import RetrievedArticle
        from briefchat.retriever.reranker import Reranker

        candidates = [RetrievedArticle(id=7, similarity=0.9), RetrievedArticle(id=8, similarity=0.9)]
        llm = _llm('{"selected_ids": [8]}')

        assert await Reranker(llm_client=llm).rerank(candidates, "query", 1) == ["8"]

    @pytest.mark.asyncio
    async def test_prompt_lists_candidate_fields(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9, 0.8])
        llm = _llm('{"selected_ids": ["a0"]}')

        await Reranker(llm_client=llm).rerank(candidates, "GPU news", 1)

        prompt = llm.generate.call_args.args[0]
        assert '"GPU news"' in prompt
        assert "ID: a0 | Date: 2025-01-01 | Source: Example Weekly" in prompt
        assert "Keywords: [k1, k2, k3, k4, k5]" in prompt
        assert "k6" not in prompt
        assert llm.generate.call_args.kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_quota_error_retries_with_fallback_model(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm(side_effect=[
            Exception("429 RESOURCE_EXHAUSTED: Quota exceeded"),
            '{"selected_ids": ["a4"]}',
        ])
        reranker = Reranker(llm_client=llm, model="primary", fallback_model="cheap")

        assert await reranker.rerank(candidates, "query", 2) == ["a4"]
        models = [c.kwargs["model"] for c in llm.generate.call_args_list]
        assert models == ["primary", "cheap"]

    @pytest.mark.asyncio
    async def test_quota_on_fallback_truncates(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm(side_effect=Exception("quota exceeded"))
        reranker = Reranker(llm_client=llm, model="primary", fallback_model="cheap")

        assert await reranker.rerank(candidates, "query", 3) == ["a0", "a1", "a2"]
        assert llm.generate.call_count == 2

    @pytest.mark.asyncio
    async def test_other_error_truncates_without_retry(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm(side_effect=RuntimeError("boom"))

        assert await Reranker(llm_client=llm).rerank(candidates, "query", 2) == ["a0", "a1"]
        assert llm.generate.call_count == 1

    @pytest.mark.asyncio
    async def test_error_mentioning_4291_is_not_quota(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        llm = _llm(side_effect=RuntimeError("unknown article id a4291"))

        assert await Reranker(llm_client=llm).rerank(candidates, "query", 2) == ["a0", "a1"]
        assert llm.generate.call_count == 1

    @pytest.mark.asyncio
    async def test_unavailable_model_truncates(self):
        from briefchat.retriever.reranker import Reranker

        candidates = _articles([0.9] * 5)
        assert await Reranker(llm_client=None).rerank(candidates, "query", 2) == ["a0", "a1"]


class TestCorpusRetriever:
    """Tests for CorpusRetriever"""

    @pytest.fixture
    def mock_embedding(self):
        embedding = Mock()
        embedding.embed = AsyncMock(return_value=[0.1] * 768)
        return embedding

    def _store(self, results):
        store = Mock()
        store.hybrid_search = AsyncMock(return_value=results)
        return store

    @pytest.mark.asyncio
    async def test_under_budget_skips_rerank(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.51, 0.6, 0.9])
        reranker = Mock()
        reranker.rerank = AsyncMock()
        retriever = CorpusRetriever(mock_embedding, self._store(candidates), reranker)

        result = await retriever.retrieve("query", top_k=10)

        assert [a.id for a in result] == ["a0", "a1", "a2"]
        reranker.rerank.assert_not_called()

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.5, 0.500001, 0.49, 0.95])
        retriever = CorpusRetriever(mock_embedding, self._store(candidates))

        result = await retriever.retrieve("query", top_k=10)

        assert [a.id for a in result] == ["a1", "a3"]

    @pytest.mark.asyncio
    async def test_embeds_as_query_and_searches_fifty(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        store = self._store([])
        retriever = CorpusRetriever(mock_embedding, store)

        await retriever.retrieve("DeepSeek 动态", top_k=10)

        mock_embedding.embed.assert_awaited_once_with("DeepSeek 动态", purpose="query")
        store.hybrid_search.assert_awaited_once_with("DeepSeek 动态", [0.1] * 768, 50)

    @pytest.mark.asyncio
    async def test_rerank_failure_returns_first_top_k(self, mock_embedding):
        from briefchat.retriever.reranker import Reranker
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.9] * 60)
        reranker = Reranker(llm_client=_llm(side_effect=RuntimeError("model exploded")))
        retriever = CorpusRetriever(mock_embedding, self._store(candidates), reranker)

        result = await retriever.retrieve("query", top_k=10)

        assert [a.id for a in result] == [f"a{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_reranker_exception_returns_first_top_k(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.9] * 12)
        reranker = Mock()
        reranker.rerank = AsyncMock(side_effect=RuntimeError("unexpected"))
        retriever = CorpusRetriever(mock_embedding, self._store(candidates), reranker)

        result = await retriever.retrieve("query", top_k=10)

        assert len(result) == 10

    @pytest.mark.asyncio
    async def test_hallucinated_ids_fall_back_to_truncation(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.9] * 12)
        reranker = Mock()
        reranker.rerank = AsyncMock(return_value=["nope", "none"])
        retriever = CorpusRetriever(mock_embedding, self._store(candidates), reranker)

        result = await retriever.retrieve("query", top_k=10)

        assert [a.id for a in result] == [f"a{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_selection_keeps_search_order(self, mock_embedding):
        from briefchat.retriever.searcher import CorpusRetriever

        candidates = _articles([0.9] * 12)
        reranker = Mock()
        reranker.rerank = AsyncMock(return_value=["a7", "a2", "a9"])
        retriever = CorpusRetriever(mock_embedding, self._store(candidates), reranker)

        result = await retriever.retrieve("query", top_k=10)

        assert [a.id for a in result] == ["a2", "a7", "a9"]
        reranker.rerank.assert_awaited_once()
        assert reranker.rerank.call_args.args[2] == 10

    @pytest.mark.asyncio
    async def test_embedding_failure_raises(self, mock_embedding):
        from briefchat.common.errors import RetrievalError
        from briefchat.retriever.searcher import CorpusRetriever

        mock_embedding.embed = AsyncMock(side_effect=RuntimeError("Embedding generation failed"))
        retriever = CorpusRetriever(mock_embedding, self._store([]))

        with pytest.raises(RetrievalError, match="Embedding generation failed"):
            await retriever.retrieve("query")

    @pytest.mark.asyncio
    async def test_search_failure_raises(self, mock_embedding):
        from briefchat.common.errors import RetrievalError
        from briefchat.retriever.searcher import CorpusRetriever

        store = Mock()
        store.hybrid_search = AsyncMock(side_effect=ConnectionError("store down"))
        retriever = CorpusRetriever(mock_embedding, store)

        with pytest.raises(RetrievalError):
            await retriever.retrieve("query")
