"""
Provider-agnostic LLM client for Briefchat's short, non-streaming calls.

Intent classification and reranking both need a cheap model that returns a
small JSON object. Supports OpenAI (and any OpenAI-compatible endpoint via
``base_url``), Anthropic, and Google Gemini behind one async interface.
"""

from __future__ import annotations

import logging
from typing import Optional

from .llm_utils import clean_reasoning_content

logger = logging.getLogger("briefchat.common.llm_client")


class LLMClient:
    """Unified async text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        openai_base_url: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.AsyncAnthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(api_key=openai_api_key, base_url=openai_base_url or None)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from google import genai

                self._client = genai.Client(api_key=google_api_key)
            except ImportError:
                logger.warning("google-genai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        json_mode: bool = False,
        timeout: float = 30.0,
    ) -> str:
        """Run one non-streaming completion and return its text.

        Args:
            prompt: User turn content
            system: Optional system instruction
            model: Override the client's default model for this call
            max_tokens: Output token cap
            json_mode: Ask the provider for a JSON-only response
            timeout: Request timeout in seconds (OpenAI/Anthropic)

        Raises:
            RuntimeError: If the client is not available
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        use_model = model or self.model

        if self.provider == "anthropic":
            kwargs = {
                "model": use_model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": prompt}],
                "timeout": timeout,
            }
            if system:
                kwargs["system"] = system
            response = await self._client.messages.create(**kwargs)
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            kwargs = {
                "model": use_model,
                "max_tokens": max_tokens,
                "messages": messages,
                "timeout": timeout,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            response = await self._client.chat.completions.create(**kwargs)
            # Reasoning models (DeepSeek-R1 distills) prepend a <think> segment
            return clean_reasoning_content(response.choices[0].message.content or "")

        if self.provider == "google":
            from google.genai import types

            config = types.GenerateContentConfig(
                system_instruction=system or None,
                max_output_tokens=max_tokens,
                response_mime_type="application/json" if json_mode else None,
            )
            response = await self._client.aio.models.generate_content(
                model=use_model,
                contents=prompt,
                config=config,
            )
            return (response.text or "").strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
