"""
Tests for Chat Orchestration

Tests intent-dependent routing between retrieval, prompt assembly and the
two provider adapters.
"""

from unittest.mock import AsyncMock, Mock

import pytest


def _msg(role, content):
    from briefchat.common.schemas import ConversationMessage
    return ConversationMessage(role=role, content=content)


def _request(query="What happened with GPU exports?", model="gemini-2.0-flash", **kwargs):
    from briefchat.common.schemas import ChatRequest
    return ChatRequest(messages=[_msg("user", query)], model=model, **kwargs)


def _articles(n):
    from briefchat.common.schemas import RetrievedArticle
    return [RetrievedArticle(id=str(i), title=f"Article {i}", similarity=0.9) for i in range(n)]


def _fake_adapter(name, deltas=("</think>", "Answer")):
    from briefchat.responder.providers import ProviderAdapter, RawEvent

    class FakeAdapter(ProviderAdapter):
        def __init__(self):
            super().__init__(name)
            self.calls = []

        async def stream(self, messages, options):
            self.calls.append((list(messages), options))
            for delta in deltas:
                yield RawEvent.text_delta(delta)

    return FakeAdapter()


async def _text(result):
    return "".join([chunk.text async for chunk in result.stream])


class TestChatOrchestrator:
    @pytest.fixture
    def parts(self):
        from briefchat.common.schemas import Intent, RouterResult

        router = Mock()
        router.classify = AsyncMock(return_value=RouterResult(intent=Intent.RAG_LOCAL))
        retriever = Mock()
        retriever.retrieve = AsyncMock(return_value=_articles(2))
        store = Mock()
        store.get_prompt = AsyncMock(return_value="System {{COUNT}}")
        return {
            "router": router,
            "retriever": retriever,
            "store": store,
            "provider_a": _fake_adapter("Gemini"),
            "provider_b": _fake_adapter("SiliconFlow"),
        }

    def _orchestrator(self, parts):
        from briefchat.responder.orchestrator import ChatOrchestrator
        return ChatOrchestrator(**parts)

    @pytest.mark.asyncio
    async def test_small_talk_skips_everything(self, parts):
        from briefchat.common.schemas import Intent

        result = await self._orchestrator(parts).orchestrate(_request("hello there", is_small_talk_mode=True))
        text = await _text(result)

        assert result.intent == Intent.DIRECT
        assert result.final_articles == []
        assert text == "Answer"
        parts["router"].classify.assert_not_called()
        parts["retriever"].retrieve.assert_not_called()
        parts["store"].get_prompt.assert_not_called()
        messages, options = parts["provider_a"].calls[0]
        assert options.use_search is False
        assert messages[0].role == "system"
        assert messages[-1].content == "hello there"

    @pytest.mark.asyncio
    async def test_rag_with_gemini(self, parts):
        from briefchat.common.schemas import Intent

        result = await self._orchestrator(parts).orchestrate(_request(use_search=False))
        await _text(result)

        assert result.intent == Intent.RAG_LOCAL
        assert result.model == "gemini-2.0-flash"
        assert result.provider == "google"
        assert [a.id for a in result.final_articles] == ["0", "1"]
        parts["retriever"].retrieve.assert_awaited_once_with("What happened with GPU exports?", 30)
        parts["store"].get_prompt.assert_awaited_once_with("gemini_chat_prompt")

        messages, options = parts["provider_a"].calls[0]
        assert messages[0].content == "System 2"
        assert "[Article index: [2]]" in messages[-1].content
        assert options.use_search is False
        assert options.model == "gemini-2.0-flash"
        assert parts["provider_b"].calls == []

    @pytest.mark.asyncio
    async def test_rag_with_provider_b(self, parts):
        result = await self._orchestrator(parts).orchestrate(
            _request(model="deepseek-ai/DeepSeek-V3.2@alok", use_search=True),
        )
        await _text(result)

        assert result.is_provider_b is True
        assert result.provider == "siliconflow"
        parts["retriever"].retrieve.assert_awaited_once_with("What happened with GPU exports?", 10)
        _, options = parts["provider_b"].calls[0]
        assert options.model == "deepseek-ai/DeepSeek-V3.2"
        assert options.key_alias == "alok"
        assert options.use_search is True
        assert parts["provider_a"].calls == []

    @pytest.mark.asyncio
    async def test_configured_default_model(self, parts):
        from briefchat.responder.orchestrator import ChatOrchestrator

        orchestrator = ChatOrchestrator(**parts, default_model="gemini-2.5-pro")
        result = await orchestrator.orchestrate(_request(model=""))
        await _text(result)

        assert result.model == "gemini-2.5-pro"
        _, options = parts["provider_a"].calls[0]
        assert options.model == "gemini-2.5-pro"

    @pytest.mark.asyncio
    async def test_search_web_skips_retrieval(self, parts):
        from briefchat.common.schemas import Intent, RouterResult
        from briefchat.responder.prompt_builder import NO_LOCAL_MATCHES

        parts["router"].classify = AsyncMock(return_value=RouterResult(intent=Intent.SEARCH_WEB))

        result = await self._orchestrator(parts).orchestrate(_request("Weather in Paris today", use_search=False))
        await _text(result)

        assert result.intent == Intent.SEARCH_WEB
        parts["retriever"].retrieve.assert_not_called()
        messages, options = parts["provider_a"].calls[0]
        assert options.use_search is True
        assert messages[0].content == "System 0"
        assert NO_LOCAL_MATCHES in messages[-1].content

    @pytest.mark.asyncio
    async def test_rewritten_query_drives_retrieval(self, parts):
        from briefchat.common.schemas import Intent, RouterResult

        parts["router"].classify = AsyncMock(return_value=RouterResult(
            intent=Intent.RAG_LOCAL, modified_query="GPU export controls 2025",
        ))

        result = await self._orchestrator(parts).orchestrate(_request("what about exports?"))
        await _text(result)

        parts["retriever"].retrieve.assert_awaited_once_with("GPU export controls 2025", 30)
        messages, _ = parts["provider_a"].calls[0]
        assert "what about exports?" in messages[-1].content

    @pytest.mark.asyncio
    async def test_router_failure_falls_back_to_rag(self, parts):
        from briefchat.common.schemas import Intent

        parts["router"].classify = AsyncMock(side_effect=RuntimeError("router down"))

        result = await self._orchestrator(parts).orchestrate(_request())

        assert result.intent == Intent.RAG_LOCAL
        parts["retriever"].retrieve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_template(self, parts):
        from briefchat.common.errors import TemplateNotFoundError

        parts["store"].get_prompt = AsyncMock(return_value=None)

        with pytest.raises(TemplateNotFoundError):
            await self._orchestrator(parts).orchestrate(_request())

    @pytest.mark.asyncio
    async def test_last_message_must_be_user(self, parts):
        from briefchat.common.schemas import ChatRequest

        request = ChatRequest(messages=[_msg("user", "q"), _msg("assistant", "a")])

        with pytest.raises(ValueError):
            await self._orchestrator(parts).orchestrate(request)
        parts["router"].classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_retrieval_error_propagates(self, parts):
        from briefchat.common.errors import RetrievalError

        parts["retriever"].retrieve = AsyncMock(side_effect=RetrievalError("search failed"))

        with pytest.raises(RetrievalError):
            await self._orchestrator(parts).orchestrate(_request())

    @pytest.mark.asyncio
    async def test_reasoning_is_stripped(self, parts):
        parts["provider_a"] = _fake_adapter("Gemini", deltas=("<think>plan", " more</think>", "Final ", "answer"))

        result = await self._orchestrator(parts).orchestrate(_request())

        assert await _text(result) == "Final answer"
        assert result.normalizer.has_finished_thinking is True
