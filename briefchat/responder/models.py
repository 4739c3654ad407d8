"""
Model Catalog

Selectable chat models and the normalization applied to a requested model
string before a provider is chosen.

A request names a model as ``modelId`` or ``modelId@keyAlias``; the alias
only picks a credential. Ids shaped like ``org/model`` go to the
OpenAI-style provider, everything else to Gemini.
"""

from dataclasses import dataclass, asdict
from typing import List, Optional

DEFAULT_CHAT_MODEL = "gemini-2.0-flash"

# Retired ids still sent by old clients; they resolve to the default model
RETIRED_MODEL_IDS = ("gemini-3-flash",)

GEMINI_PREFIXES = ("gemini-", "gemma-")


@dataclass(frozen=True)
class ModelSpec:
    """A selectable chat model"""
    id: str
    name: str
    description: str
    has_search: bool
    quota: str
    provider: str  # "google" | "siliconflow"

    def to_dict(self) -> dict:
        return asdict(self)


MODEL_CATALOG: List[ModelSpec] = [
    # Provider B (OpenAI-style streaming)
    ModelSpec("deepseek-ai/DeepSeek-R1-Distill-Qwen-7B", "DS-R1-Distill-7B (Free)",
              "Free R1 distill, good value", False, "Free", "siliconflow"),
    ModelSpec("THUDM/glm-4-9b-chat", "GLM-4-9B (Free)",
              "Free, everyday chat", False, "Free", "siliconflow"),
    ModelSpec("deepseek-ai/DeepSeek-R1-Distill-Qwen-14B", "DS-R1-Distill-14B",
              "Strong math and logic", False, "¥0.7/M", "siliconflow"),
    ModelSpec("deepseek-ai/DeepSeek-R1-Distill-Qwen-32B", "DS-R1-Distill-32B",
              "Deep reasoning", False, "¥1.26/M", "siliconflow"),
    ModelSpec("Qwen/Qwen3-14B", "Qwen3-14B",
              "Good value, supports thinking", False, "¥2.0/M", "siliconflow"),
    ModelSpec("Qwen/Qwen3-30B-A3B-Instruct", "Qwen3-30B-A3B",
              "Long context, 256K", False, "¥2.8/M", "siliconflow"),
    ModelSpec("deepseek-ai/DeepSeek-V3.2", "DeepSeek-V3.2",
              "Top performance, complex search", False, "¥3.0/M", "siliconflow"),
    ModelSpec("Qwen/Qwen3-VL-8B-Instruct", "Qwen3-VL-8B",
              "Vision-capable, 256K", False, "¥2.0/M", "siliconflow"),
    # Provider A (Gemini)
    ModelSpec("gemini-2.5-flash-lite-preview-09-2025", "Gemini 2.5 Flash-Lite (Sep)",
              "September 2025 preview", True, "15 RPM / 100 RPD", "google"),
    ModelSpec("gemini-flash-lite-latest", "Gemini Flash-Lite (Latest)",
              "Classic low-load model", True, "15 RPM / 100 RPD", "google"),
    ModelSpec("gemini-3-flash-preview", "Gemini 3.0 Flash (Preview)",
              "Next generation, separate quota pool", True, "15 RPM / separate RPD", "google"),
    ModelSpec("gemini-2.5-flash-lite", "Gemini 2.5 Flash-Lite",
              "Fastest responses", True, "15 RPM / separate RPD", "google"),
    ModelSpec("gemini-2.0-flash", "Gemini 2.0 Flash",
              "All-round flagship", True, "1500 RPM / 20 RPD", "google"),
    ModelSpec("gemini-2.5-pro", "Gemini 2.5 Pro",
              "Strongest reasoning, very low RPD", True, "2 RPM / 50 RPD", "google"),
]


@dataclass(frozen=True)
class ResolvedModel:
    """A requested model after normalization"""
    model_id: str
    key_alias: str = ""
    is_provider_b: bool = False


def resolve_model(requested: Optional[str], default: str = DEFAULT_CHAT_MODEL) -> ResolvedModel:
    """
    Normalize a requested model string.

    - ``modelId@keyAlias`` is split; the alias selects a credential
    - Empty ids and retired ids map to ``default`` (the configured chat model)
    - Ids containing ``/`` select provider B
    - Any other id that is not a Gemini/Gemma model falls back to the default
    """
    raw_id, _, alias = (requested or "").strip().partition("@")
    model_id = raw_id.strip()
    if not model_id or model_id in RETIRED_MODEL_IDS:
        model_id = default
    alias = alias.strip().lower()

    if "/" in model_id:
        return ResolvedModel(model_id=model_id, key_alias=alias, is_provider_b=True)

    if not model_id.startswith(GEMINI_PREFIXES):
        model_id = default

    return ResolvedModel(model_id=model_id, key_alias=alias, is_provider_b=False)


def context_budget(model_id: str, large: int = 30, small: int = 10) -> int:
    """Articles the answering model accepts: Gemini's long context takes more."""
    return large if model_id.startswith("gemini") else small
