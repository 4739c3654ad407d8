"""
Gemini Adapter

Native multi-turn chat through the google-genai SDK. Prior turns become
chat history, system messages become the system instruction, and only the
active turn is sent as the new message. The SDK exposes the stream as an
async iterator, so no wire parsing happens here.
"""

import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from ...common.errors import ProviderStreamError, QuotaExceededError, is_quota_error
from ...common.schemas import ConversationMessage, Role
from .base import ProviderAdapter, RawEvent, StreamOptions

logger = logging.getLogger("briefchat.responder.providers.gemini")


HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def _default_client_factory(api_key: str):
    from google import genai
    return genai.Client(api_key=api_key)


class GeminiAdapter(ProviderAdapter):
    """
    Adapter A: Gemini chat sessions with optional Google Search grounding.

    Safety filtering is set to BLOCK_NONE for every category; analytical
    coverage of security or policy news must not be blocked.
    """

    def __init__(
        self,
        key_resolver: Callable[[str], Tuple[str, str]],
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize adapter.

        Args:
            key_resolver: alias -> (api_key, label), e.g. BriefchatConfig.resolve_google_key
            temperature: Sampling temperature
            max_output_tokens: Output cap per answer
            client_factory: api_key -> genai.Client (tests inject fakes)
        """
        super().__init__("Gemini")
        self._resolve_key = key_resolver
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client_factory = client_factory or _default_client_factory
        self._clients: Dict[str, Any] = {}

    def _client_for(self, api_key: str):
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key)
            self._clients[api_key] = client
        return client

    @staticmethod
    def split_messages(
        messages: Sequence[ConversationMessage],
    ) -> Tuple[str, List[ConversationMessage], str]:
        """
        Split assembled messages into (system instruction, history, new message).

        Raises:
            ValueError: no non-system message to send
        """
        system = "\n\n".join(m.content for m in messages if m.role == Role.SYSTEM.value and m.content)
        turns = [m for m in messages if m.role != Role.SYSTEM.value]
        if not turns:
            raise ValueError("Message is required")
        return system, turns[:-1], turns[-1].content

    def build_config(self, system: str, use_search: bool):
        from google.genai import types

        return types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
            safety_settings=[
                types.SafetySetting(category=category, threshold="BLOCK_NONE")
                for category in HARM_CATEGORIES
            ],
            tools=[types.Tool(google_search=types.GoogleSearch())] if use_search else None,
        )

    @staticmethod
    def build_history(turns: Sequence[ConversationMessage]) -> list:
        from google.genai import types

        return [
            types.Content(
                role="user" if m.is_user else "model",
                parts=[types.Part(text=m.content)],
            )
            for m in turns
        ]

    async def stream(
        self,
        messages: Sequence[ConversationMessage],
        options: StreamOptions,
    ) -> AsyncIterator[RawEvent]:
        api_key, key_label = self._resolve_key(options.key_alias)
        system, history, new_message = self.split_messages(messages)

        chat = self._client_for(api_key).aio.chats.create(
            model=options.model,
            config=self.build_config(system, options.use_search),
            history=self.build_history(history),
        )
        logger.info(
            "Request start | Model: %s | Key: %s | UseSearch: %s | History: %d",
            options.model, key_label, options.use_search, len(history),
        )

        try:
            response = await chat.send_message_stream(new_message)
        except Exception as e:
            raise self._wrap_error(e, key_label, new_message) from e

        try:
            async for chunk in response:
                text = chunk.text
                if text:
                    yield RawEvent.text_delta(text)
        except ProviderStreamError:
            raise
        except Exception as e:
            raise self._wrap_error(e, key_label, new_message) from e
        finally:
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                await aclose()

    def _wrap_error(self, exc: Exception, key_label: str, query: str) -> ProviderStreamError:
        logger.error("Chat request failed | Key: %s | Query: %r | %s", key_label, query[:30], exc)
        status = getattr(exc, "code", None)
        if not isinstance(status, int):
            status = None
        error_cls = QuotaExceededError if is_quota_error(exc) else ProviderStreamError
        return error_cls(
            f"AI chat request failed (Key: {key_label}): {exc}",
            status=status,
            provider=self.provider_name,
        )
