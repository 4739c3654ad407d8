"""
Chat Orchestrator

Composes routing, retrieval, prompt assembly, provider streaming and
normalization into one request-scoped pipeline.

Pipeline:
1. Normalize the requested model (provider, credential alias)
2. Classify intent (skipped in small-talk mode)
3. For RAG_LOCAL only: retrieve and rerank articles
4. Decide whether search tooling is on
5. Assemble messages and open the provider stream
6. Wrap the stream in the reasoning filter
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from ..common.config import BriefchatConfig
from ..common.corpus_store import CorpusStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import ConfigError, TemplateNotFoundError
from ..common.llm_client import LLMClient
from ..common.schemas import (
    ChatRequest,
    Intent,
    RetrievedArticle,
    RouterResult,
    StreamChunk,
    last_user_query,
)
from ..retriever import CorpusRetriever, IntentRouter, Reranker
from .models import DEFAULT_CHAT_MODEL, context_budget, resolve_model
from .prompt_builder import PromptAssembler, effective_search
from .providers import GeminiAdapter, ProviderAdapter, SiliconFlowAdapter, StreamOptions
from .stream_normalizer import StreamNormalizer

logger = logging.getLogger("briefchat.responder.orchestrator")


@dataclass
class OrchestrationResult:
    """Everything the caller needs to serve one turn"""
    stream: AsyncIterator[StreamChunk]
    intent: Intent
    final_articles: List[RetrievedArticle]
    model: str
    is_provider_b: bool
    routing: Optional[RouterResult] = None
    normalizer: Optional[StreamNormalizer] = field(default=None, repr=False)

    @property
    def provider(self) -> str:
        return "siliconflow" if self.is_provider_b else "google"


class ChatOrchestrator:
    """
    Runs one chat turn.

    Holds only read-only collaborators; every call builds its own state, so
    one instance serves concurrent requests.
    """

    def __init__(
        self,
        router: IntentRouter,
        retriever: CorpusRetriever,
        store: CorpusStore,
        provider_a: ProviderAdapter,
        provider_b: ProviderAdapter,
        assembler: Optional[PromptAssembler] = None,
        chat_prompt_key: str = "gemini_chat_prompt",
        default_model: str = DEFAULT_CHAT_MODEL,
        large_context_topk: int = 30,
        small_context_topk: int = 10,
    ):
        """
        Initialize orchestrator.

        Args:
            router: Intent router
            retriever: Corpus retriever (with reranker)
            store: Key-value source of the chat system template
            provider_a: Gemini adapter
            provider_b: OpenAI-style streaming adapter
            assembler: Prompt assembler
            chat_prompt_key: Key of the chat template in the store
            default_model: Model used when the request names none (or an unknown one)
            large_context_topk: Article budget for long-context models
            small_context_topk: Article budget for everything else
        """
        self._router = router
        self._retriever = retriever
        self._store = store
        self._provider_a = provider_a
        self._provider_b = provider_b
        self._assembler = assembler or PromptAssembler()
        self._chat_prompt_key = chat_prompt_key
        self.default_model = default_model
        self._large_topk = large_context_topk
        self._small_topk = small_context_topk

    @classmethod
    def from_config(cls, config: BriefchatConfig) -> "ChatOrchestrator":
        """Build the full component graph once at startup."""
        router_llm = LLMClient(
            provider=config.llm.router_provider,
            model=config.llm.router_model,
            anthropic_api_key=config.llm.anthropic_api_key,
            openai_api_key=config.llm.openai_api_key or config.siliconflow.api_key,
            openai_base_url=config.openai_base_url,
            google_api_key=_optional_google_key(config, ""),
        )
        router = IntentRouter(
            llm_client=router_llm,
            enabled=config.router.enabled,
            short_query_threshold=config.router.short_query_threshold,
            history_window=config.router.history_window,
        )

        rerank_llm = LLMClient(
            provider="google",
            model=config.google.rerank_model,
            google_api_key=_optional_google_key(config, ""),
        )
        reranker = Reranker(
            llm_client=rerank_llm,
            model=config.google.rerank_model,
            fallback_model=config.google.rerank_fallback_model,
        )

        embedding_key = _optional_google_key(config, config.embedding.key_alias)
        embedding = EmbeddingService(
            api_key=embedding_key,
            model=config.embedding.model,
            dimensions=config.embedding.dimensions,
            key_label=(config.embedding.key_alias or config.google.default_alias).upper(),
        )

        store = CorpusStore(
            url=config.store.url,
            service_key=config.store.service_key,
            search_rpc=config.store.search_rpc,
            config_table=config.store.config_table,
        )

        retriever = CorpusRetriever(
            embedding_service=embedding,
            store=store,
            reranker=reranker,
            match_count=config.retriever.match_count,
            similarity_threshold=config.retriever.similarity_threshold,
        )

        return cls(
            router=router,
            retriever=retriever,
            store=store,
            provider_a=GeminiAdapter(
                key_resolver=config.resolve_google_key,
                temperature=config.google.temperature,
                max_output_tokens=config.google.max_output_tokens,
            ),
            provider_b=SiliconFlowAdapter(
                api_key=config.siliconflow.api_key,
                base_url=config.siliconflow.base_url,
                temperature=config.siliconflow.temperature,
                search_tool_blocklist=config.siliconflow.search_tool_blocklist,
            ),
            chat_prompt_key=config.store.chat_prompt_key,
            default_model=config.google.chat_model,
            large_context_topk=config.retriever.large_context_topk,
            small_context_topk=config.retriever.small_context_topk,
        )

    async def orchestrate(self, request: ChatRequest) -> OrchestrationResult:
        """
        Run one chat turn up to the point where the answer starts streaming.

        Raises:
            ValueError: the conversation does not end with a user message
            RetrievalError: embedding or hybrid search failed
            TemplateNotFoundError: the chat template is missing
            ConfigError: no credential for the selected provider
        """
        resolved = resolve_model(request.model, default=self.default_model)
        query = last_user_query(request.messages)

        routing = await self._classify(query, request)
        intent = routing.intent

        articles: List[RetrievedArticle] = []
        if intent == Intent.RAG_LOCAL:
            top_k = context_budget(resolved.model_id, self._large_topk, self._small_topk)
            retrieval_query = routing.modified_query or query
            articles = await self._retriever.retrieve(retrieval_query, top_k)

        use_search = effective_search(intent, request.use_search)

        chat_template = None
        if intent != Intent.DIRECT:
            chat_template = await self._load_chat_template()

        messages = self._assembler.assemble(
            intent,
            request.messages,
            articles,
            chat_template=chat_template,
            detailed=not resolved.is_provider_b,
        )

        adapter = self._provider_b if resolved.is_provider_b else self._provider_a
        raw_stream = adapter.stream(
            messages,
            StreamOptions(model=resolved.model_id, use_search=use_search, key_alias=resolved.key_alias),
        )
        normalizer = StreamNormalizer()

        logger.info(
            "Orchestrated | Model: %s | Provider: %s | Intent: %s | Search: %s | Context: %d articles",
            resolved.model_id, adapter.provider_name, intent.value, use_search, len(articles),
        )

        return OrchestrationResult(
            stream=normalizer.normalize(raw_stream),
            intent=intent,
            final_articles=articles,
            model=resolved.model_id,
            is_provider_b=resolved.is_provider_b,
            routing=routing,
            normalizer=normalizer,
        )

    async def _classify(self, query: str, request: ChatRequest) -> RouterResult:
        if request.is_small_talk_mode:
            return RouterResult(intent=Intent.DIRECT, reasoning="Small talk mode")
        try:
            return await self._router.classify(query, request.messages)
        except Exception as e:
            logger.warning("Router failed, falling back to RAG_LOCAL: %s", e)
            return RouterResult(intent=Intent.RAG_LOCAL, reasoning="Fallback on Error")

    async def _load_chat_template(self) -> str:
        template = await self._store.get_prompt(self._chat_prompt_key)
        if not template:
            raise TemplateNotFoundError(f"Chat prompt '{self._chat_prompt_key}' not found in store")
        logger.debug("Chat prompt loaded | length: %d", len(template))
        return template


def _optional_google_key(config: BriefchatConfig, alias: str) -> Optional[str]:
    try:
        key, _ = config.resolve_google_key(alias)
    except ConfigError:
        return None
    return key
