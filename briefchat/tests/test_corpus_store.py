"""Tests for the PostgREST corpus store client."""

import json

import httpx
import pytest


def _store(handler):
    from briefchat.common.corpus_store import CorpusStore
    return CorpusStore(
        url="https://proj.supabase.co/",
        service_key="svc-key",
        transport=httpx.MockTransport(handler),
    )


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_posts_rpc_and_maps_rows(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["apikey"] = request.headers["apikey"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[
                {"id": 1, "title": "A", "sourceName": "Src", "similarity": 0.8},
                {"title": "no id"},
                {"id": "b", "title": "B", "source_name": "Src2", "similarity": 0.6},
            ])

        results = await _store(handler).hybrid_search("  gpu news ", [0.1, 0.2], match_count=50)

        assert seen["url"] == "https://proj.supabase.co/rest/v1/rpc/hybrid_search_articles"
        assert seen["auth"] == "Bearer svc-key"
        assert seen["apikey"] == "svc-key"
        assert seen["body"] == {"query_text": "gpu news", "query_embedding": [0.1, 0.2], "match_count": 50}
        assert [a.id for a in results] == ["1", "b"]
        assert results[0].source_name == "Src"
        assert results[1].source_name == "Src2"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(500, json={"message": "boom"})

        with pytest.raises(httpx.HTTPStatusError):
            await _store(handler).hybrid_search("q", [0.1])

    @pytest.mark.asyncio
    async def test_unconfigured_store_raises(self):
        from briefchat.common.corpus_store import CorpusStore

        store = CorpusStore(url="", service_key="")
        assert store.is_available is False
        with pytest.raises(RuntimeError, match="not configured"):
            await store.hybrid_search("q", [0.1])


class TestPrompts:
    @pytest.mark.asyncio
    async def test_get_prompt(self):
        def handler(request):
            assert request.url.path == "/rest/v1/app_config"
            assert request.url.params["key"] == "eq.gemini_chat_prompt"
            return httpx.Response(200, json=[{"value": "You are... {{COUNT}}"}])

        assert await _store(handler).get_prompt("gemini_chat_prompt") == "You are... {{COUNT}}"

    @pytest.mark.asyncio
    async def test_get_missing_prompt(self):
        def handler(request):
            return httpx.Response(200, json=[])

        assert await _store(handler).get_prompt("gemini_chat_prompt") is None

    @pytest.mark.asyncio
    async def test_put_prompt_upserts(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["prefer"] = request.headers["prefer"]
            seen["on_conflict"] = request.url.params["on_conflict"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201)

        await _store(handler).put_prompt("gemini_chat_prompt", "new template")

        assert seen == {
            "method": "POST",
            "prefer": "resolution=merge-duplicates",
            "on_conflict": "key",
            "body": {"key": "gemini_chat_prompt", "value": "new template"},
        }
