"""
Responder - Prompt Assembly, Provider Streaming and Orchestration

Turns a routed, grounded query into a streamed answer.

Key Components:
- PromptAssembler: Intent-specific message lists with a numbered article block
- GeminiAdapter / SiliconFlowAdapter: Two upstream providers, one interface
- StreamNormalizer: Strips inline reasoning, hides tool-call fragments
- ChatOrchestrator: One request/response cycle end to end
"""

from .models import MODEL_CATALOG, ModelSpec, ResolvedModel, context_budget, resolve_model
from .orchestrator import ChatOrchestrator, OrchestrationResult
from .prompt_builder import PromptAssembler, effective_search
from .sse import SSEDecoder
from .stream_normalizer import StreamNormalizer

__all__ = [
    "MODEL_CATALOG",
    "ModelSpec",
    "ResolvedModel",
    "context_budget",
    "resolve_model",
    "ChatOrchestrator",
    "OrchestrationResult",
    "PromptAssembler",
    "effective_search",
    "SSEDecoder",
    "StreamNormalizer",
]
