"""
Intent Router

Decides how a query should be answered: directly, from the local article
corpus, or with live web facts. Cheap heuristics run first; anything they
cannot settle goes to a low-cost classification model whose JSON output is
parsed defensively. Classification never fails the turn: on any error the
router falls back to local retrieval.
"""

import logging
from typing import Optional, Sequence

from ..common.language import detect_language, same_language
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.errors import ParseError
from ..common.schemas import ConversationMessage, Intent, RouterResult

logger = logging.getLogger("briefchat.retriever.intent_router")


# Classification prompt. Examples keep the user's own language so the
# model learns not to translate proper nouns in modifiedQuery.
ROUTER_PROMPT = """You are the high-speed traffic router of an AI assistant.
Your only job is to classify the user's query into exactly one of three intents.

### Intents
1. "DIRECT": small talk, greetings, logic puzzles, coding questions, creative writing,
   or questions about YOU (the assistant) yourself: identity, version, abilities, training data.
   - Examples: "你好", "write a python script", "what is 1+1?", "are you GPT-4?", "what is your knowledge cutoff?"
2. "RAG_LOCAL": the user asks about content in the LOCAL RSS subscriptions / article database.
   This includes questions about "articles", "news", "summaries", or specific technology topics.
   - Example: "总结最新的 AI 新闻" -> intent: RAG_LOCAL, modifiedQuery: "最新 AI 新闻总结"
   - Example: "DeepSeek 最近有什么动态？" -> intent: RAG_LOCAL, modifiedQuery: "DeepSeek 动态"
   - Example: "What is trending in inverted index technology?" -> intent: RAG_LOCAL, modifiedQuery: "inverted index trends"
3. "SEARCH_WEB": the user asks for REAL-TIME external information that the RSS library certainly
   does not contain, or explicitly asks to search the web.
   - Examples: "NVIDIA's stock price right now", "weather in Tokyo today".

### Output format (strict JSON)
{{
  "intent": "DIRECT" | "RAG_LOCAL" | "SEARCH_WEB",
  "reasoning": "very short explanation (< 10 words)",
  "modifiedQuery": "query optimized for vector search. IMPORTANT: use the SAME language as the user's query. Never translate proper nouns (e.g. 'SiliconFlow', 'DeepSeek', '倒排索引') unless the user explicitly asks."
}}

### User query
{query}

### Recent conversation (context only)
{history}
"""


class IntentRouter:
    """
    Classifies a user query into an ``Intent``.

    Responsibilities:
    1. Honour the global on/off flag
    2. Route very short inputs to DIRECT without a model call
    3. Ask the classification model, with recent history for disambiguation
    4. Parse and validate its JSON; fall back to RAG_LOCAL on any failure
    """

    SHORT_QUERY_THRESHOLD = 5
    HISTORY_WINDOW = 4

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        enabled: bool = True,
        short_query_threshold: int = SHORT_QUERY_THRESHOLD,
        history_window: int = HISTORY_WINDOW,
        max_tokens: int = 4096,
    ):
        """Initialize router.

        Args:
            llm_client: Client bound to the classification model
            enabled: Global feature flag; when False every call is RAG_LOCAL
            short_query_threshold: Queries shorter than this are DIRECT
            history_window: Prior messages included as context
            max_tokens: Output cap for the classifier (reasoning models think first)
        """
        self._llm = llm_client
        self._enabled = enabled
        self._short_threshold = short_query_threshold
        self._history_window = history_window
        self._max_tokens = max_tokens

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def classify(
        self,
        query: str,
        history: Sequence[ConversationMessage] = (),
    ) -> RouterResult:
        """
        Classify a query.

        Args:
            query: The active user query
            history: The conversation, possibly ending with the active query

        Returns:
            RouterResult; never raises for classification problems
        """
        if not self._enabled:
            return RouterResult(intent=Intent.RAG_LOCAL, reasoning="Router Disabled (Config)")

        clean_query = (query or "").strip()

        # Fast path: "hi", "test", "你好" are conversational
        if len(clean_query) < self._short_threshold:
            logger.info("Fast path: DIRECT (short query)")
            return RouterResult(intent=Intent.DIRECT, reasoning="Short query heuristic")

        try:
            if self._llm is None or not self._llm.is_available:
                raise RuntimeError("classification model unavailable")

            system_prompt = ROUTER_PROMPT.format(
                query=clean_query,
                history=self._format_history(clean_query, history),
            )
            raw = await self._llm.generate(
                clean_query,
                system=system_prompt,
                max_tokens=self._max_tokens,
            )
            result = self._parse_result(raw)

        except Exception as e:
            logger.warning("Classification failed, falling back to RAG_LOCAL: %s", e)
            return RouterResult(intent=Intent.RAG_LOCAL, reasoning="Fallback on Error")

        if result.modified_query and not same_language(clean_query, result.modified_query):
            logger.info(
                "Dropping modifiedQuery in a different language (%s): %r",
                detect_language(result.modified_query).code, result.modified_query,
            )
            result = result.model_copy(update={"modified_query": None})

        logger.info("Classified: %s | Reasoning: %s", result.intent.value, result.reasoning)
        return result

    def _format_history(self, query: str, history: Sequence[ConversationMessage]) -> str:
        """Render the prior turns (excluding the active query) for the prompt."""
        previous = list(history)
        if previous and previous[-1].is_user and previous[-1].content.strip() == query:
            previous = previous[:-1]
        previous = previous[-self._history_window:] if self._history_window > 0 else []

        if not previous:
            return "None"
        return "\n".join(f"{m.role.upper()}: {m.content}" for m in previous)

    def _parse_result(self, raw: str) -> RouterResult:
        """Parse and validate the classifier's JSON answer."""
        data = parse_llm_json(raw)

        intent_map = {v.value: v for v in Intent}
        intent_value = str(data.get("intent", "")).strip()
        if intent_value not in intent_map:
            raise ParseError("validate", f"Invalid intent: {data.get('intent')!r}")

        modified = data.get("modifiedQuery") or data.get("modified_query")
        if modified is not None and not isinstance(modified, str):
            modified = None

        return RouterResult(
            intent=intent_map[intent_value],
            reasoning=str(data.get("reasoning", "")),
            modified_query=(modified or "").strip() or None,
        )
