"""
SiliconFlow Adapter

OpenAI-style ``/chat/completions`` endpoint reached over a raw HTTP stream.

Processes:
- content deltas (answer text)
- reasoning_content deltas (reasoning models; kept out of the text stream)
- tool_calls deltas (function tool requests; surfaced on a side channel)
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from ...common.errors import ConfigError, ProviderStreamError, QuotaExceededError
from ...common.schemas import ConversationMessage, Role
from ..sse import SSEDecoder
from .base import ProviderAdapter, RawEvent, EventKind, StreamOptions

logger = logging.getLogger("briefchat.responder.providers.siliconflow")


VALID_ROLES = (Role.SYSTEM.value, Role.USER.value, Role.ASSISTANT.value)

# Non-standard role names sent by clients built for other providers
ROLE_ALIASES = {
    "model": Role.ASSISTANT.value,
    "bot": Role.ASSISTANT.value,
    "human": Role.USER.value,
}

GOOGLE_SEARCH_TOOL = {
    "type": "function",
    "function": {
        "name": "google_search",
        "description": "Perform a google search to get latest information.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query string",
                },
            },
            "required": ["query"],
        },
    },
}


def normalize_messages(messages: Sequence[ConversationMessage]) -> List[Dict[str, str]]:
    """
    Prepare messages for an endpoint that does not honour the system role.

    1. Map non-standard roles to the nearest standard one
    2. Drop unknown roles and empty-content messages
    3. Merge every system message into the front of the first user message
       (or prepend a user message when the conversation starts otherwise)
    """
    sanitized = []
    for m in messages:
        role = ROLE_ALIASES.get(m.role, m.role)
        content = m.content or ""
        if role not in VALID_ROLES or not content.strip():
            continue
        sanitized.append({"role": role, "content": content})

    system_parts = [m["content"] for m in sanitized if m["role"] == Role.SYSTEM.value]
    conversation = [m for m in sanitized if m["role"] != Role.SYSTEM.value]

    if system_parts:
        system_content = "\n\n".join(system_parts)
        if conversation and conversation[0]["role"] == Role.USER.value:
            conversation[0] = {
                "role": Role.USER.value,
                "content": f"{system_content}\n\n{conversation[0]['content']}",
            }
        else:
            conversation.insert(0, {"role": Role.USER.value, "content": system_content})

    return conversation


class SiliconFlowAdapter(ProviderAdapter):
    """
    Adapter B: raw SSE streaming against an OpenAI-compatible endpoint.

    The HTTP response is opened inside the generator, so closing the
    generator (client disconnect, cancellation) closes the upstream stream.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.siliconflow.cn/v1",
        temperature: float = 0.7,
        search_tool_blocklist: Sequence[str] = ("THUDM/glm-4-9b-chat",),
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize adapter.

        Args:
            api_key: Bearer token for the endpoint
            base_url: API base URL (``/chat/completions`` is appended)
            temperature: Sampling temperature
            search_tool_blocklist: Models that break when given tool definitions
            timeout: Read timeout; None leaves deadlines to the caller
            transport: Optional httpx transport (tests)
        """
        super().__init__("SiliconFlow")
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._temperature = temperature
        self._blocklist = set(search_tool_blocklist)
        self._timeout = timeout
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def build_payload(
        self,
        messages: Sequence[ConversationMessage],
        options: StreamOptions,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": options.model,
            "messages": normalize_messages(messages),
            "stream": True,
            "temperature": self._temperature,
        }
        if options.use_search and options.model not in self._blocklist:
            payload["tools"] = [GOOGLE_SEARCH_TOOL]
            payload["tool_choice"] = "auto"
        return payload

    async def stream(
        self,
        messages: Sequence[ConversationMessage],
        options: StreamOptions,
    ) -> AsyncIterator[RawEvent]:
        if not self._api_key:
            raise ConfigError("SILICONFLOW_API_KEY is not defined")

        payload = self.build_payload(messages, options)
        logger.info(
            "Sending request to %s (Search: %s, Tools: %s, Messages: %d)",
            options.model, options.use_search, "tools" in payload, len(payload["messages"]),
        )

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        decoder = SSEDecoder()

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            async with client.stream("POST", self._url, json=payload, headers=headers) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error("%s API Error: %s - %s", self.provider_name, response.status_code, body[:500])
                    raise self._http_error(response.status_code, body)

                async for chunk in response.aiter_bytes():
                    for event in decoder.feed(chunk):
                        for raw in self._to_raw_events(event, decoder):
                            yield raw

                for event in decoder.flush():
                    for raw in self._to_raw_events(event, decoder):
                        yield raw

        if decoder.skipped:
            logger.warning("Skipped %d malformed SSE frames from %s", decoder.skipped, options.model)

    def _http_error(self, status: int, body: str) -> ProviderStreamError:
        error_cls = QuotaExceededError if status == 429 else ProviderStreamError
        return error_cls(body, status=status, provider=self.provider_name)

    def _to_raw_events(self, event: Dict[str, Any], decoder: SSEDecoder) -> List[RawEvent]:
        """
        Split one chunk payload into text / reasoning / tool-call events.

        A frame with an unexpected shape is counted as skipped and dropped;
        the rest of the stream is unaffected.
        """
        choices = event.get("choices")
        if not choices:
            return []

        choice = choices[0] if isinstance(choices, list) else None
        delta = choice.get("delta") if isinstance(choice, dict) else None
        if delta is None and isinstance(choice, dict):
            return []
        if not isinstance(delta, dict):
            return self._skip_frame(event, decoder)

        reasoning = delta.get("reasoning_content")
        content = delta.get("content")
        tool_calls = delta.get("tool_calls") or []
        if (
            (reasoning is not None and not isinstance(reasoning, str))
            or (content is not None and not isinstance(content, str))
            or not isinstance(tool_calls, list)
        ):
            return self._skip_frame(event, decoder)

        raw_events = []
        if reasoning:
            raw_events.append(RawEvent(kind=EventKind.REASONING, text=reasoning))
        if content:
            raw_events.append(RawEvent.text_delta(content))
        for call in tool_calls:
            if isinstance(call, dict):
                raw_events.append(RawEvent(kind=EventKind.TOOL_CALL, data=call))

        return raw_events

    @staticmethod
    def _skip_frame(event: Dict[str, Any], decoder: SSEDecoder) -> List[RawEvent]:
        decoder.skipped += 1
        logger.warning("Skipping SSE frame with unexpected shape: %r", str(event)[:120])
        return []
