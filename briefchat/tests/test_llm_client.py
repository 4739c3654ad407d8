"""Tests for LLMClient provider abstraction."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from briefchat.common.llm_client import LLMClient


class TestLLMClientInit:
    def test_missing_anthropic_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="briefchat.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_openai_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="briefchat.common.llm_client"):
            client = LLMClient(provider="openai")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_google_key_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="briefchat.common.llm_client"):
            client = LLMClient(provider="google")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="briefchat.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_openai_with_base_url_is_available(self):
        client = LLMClient(
            provider="openai",
            model="deepseek-ai/DeepSeek-R1-Distill-Qwen-7B",
            openai_api_key="sk-test",
            openai_base_url="https://api.siliconflow.cn/v1",
        )
        assert client.is_available


class TestLLMClientGenerate:
    @pytest.mark.asyncio
    async def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            await client.generate("test")

    @pytest.mark.asyncio
    async def test_openai_strips_reasoning_and_sets_json_mode(self):
        client = LLMClient(provider="openai", model="router-model")
        response = SimpleNamespace(choices=[
            SimpleNamespace(message=SimpleNamespace(content='<think>hmm</think>\n{"intent": "DIRECT"}'))
        ])
        client._client = Mock()
        client._client.chat.completions.create = AsyncMock(return_value=response)

        text = await client.generate("hi", system="classify", json_mode=True)

        assert text == '{"intent": "DIRECT"}'
        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "router-model"
        assert kwargs["messages"][0] == {"role": "system", "content": "classify"}
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_anthropic_omits_empty_system(self):
        client = LLMClient(provider="anthropic", model="claude-test")
        response = SimpleNamespace(content=[SimpleNamespace(text="  answer  ")])
        client._client = Mock()
        client._client.messages.create = AsyncMock(return_value=response)

        text = await client.generate("question")

        assert text == "answer"
        assert "system" not in client._client.messages.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_google_model_override(self):
        client = LLMClient(provider="google", model="gemini-default")
        client._client = Mock()
        client._client.aio.models.generate_content = AsyncMock(
            return_value=SimpleNamespace(text=' {"selected_ids": []} ')
        )

        text = await client.generate("rerank", model="gemini-flash-lite-latest", json_mode=True)

        assert text == '{"selected_ids": []}'
        kwargs = client._client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-flash-lite-latest"
        assert kwargs["config"].response_mime_type == "application/json"
