"""
Configuration Management for Briefchat

Loads configuration from ~/.briefchat/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Tuple

from .errors import ConfigError

logger = logging.getLogger("briefchat.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".briefchat"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"

DEFAULT_KEY_ALIAS = "default"


@dataclass
class GoogleConfig:
    """Gemini (provider A) configuration"""
    api_keys: Dict[str, str] = field(default_factory=dict)  # alias -> key
    default_alias: str = DEFAULT_KEY_ALIAS
    chat_model: str = "gemini-2.0-flash"
    rerank_model: str = "gemini-2.5-flash-lite-preview-09-2025"
    rerank_fallback_model: str = "gemini-flash-lite-latest"
    temperature: float = 0.7
    max_output_tokens: int = 8192


@dataclass
class SiliconFlowConfig:
    """OpenAI-style streaming endpoint (provider B) configuration"""
    api_key: str = ""
    base_url: str = "https://api.siliconflow.cn/v1"
    temperature: float = 0.7
    search_tool_blocklist: list = field(default_factory=lambda: ["THUDM/glm-4-9b-chat"])


@dataclass
class LLMConfig:
    """Non-streaming completion calls (intent classification)"""
    router_provider: str = "openai"
    router_model: str = "deepseek-ai/DeepSeek-R1-Distill-Qwen-7B"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""  # empty: reuse the provider B base URL


@dataclass
class RouterConfig:
    """Intent router configuration"""
    enabled: bool = True
    short_query_threshold: int = 5
    history_window: int = 4


@dataclass
class RetrieverConfig:
    """Corpus retrieval configuration"""
    match_count: int = 50
    similarity_threshold: float = 0.5
    large_context_topk: int = 30
    small_context_topk: int = 10


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    model: str = "gemini-embedding-001"
    dimensions: int = 768
    key_alias: str = ""  # empty: use the default Google key


@dataclass
class StoreConfig:
    """Article store (PostgREST) configuration"""
    url: str = ""
    service_key: str = ""
    search_rpc: str = "hybrid_search_articles"
    config_table: str = "app_config"
    chat_prompt_key: str = "gemini_chat_prompt"
    briefing_prompt_key: str = "gemini_briefing_prompt"


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8090


@dataclass
class BriefchatConfig:
    """Main Briefchat configuration"""
    google: GoogleConfig = field(default_factory=GoogleConfig)
    siliconflow: SiliconFlowConfig = field(default_factory=SiliconFlowConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)

    def resolve_google_key(self, alias: str = "") -> Tuple[str, str]:
        """Pick the Gemini credential for a request.

        An alias naming a configured key wins. Otherwise the default alias
        is used, then any configured key.

        Returns:
            (api_key, label) where label names the alias for logging
        """
        keys = {k: v for k, v in self.google.api_keys.items() if v}
        if alias and alias in keys:
            return keys[alias], alias.upper()
        if self.google.default_alias in keys:
            return keys[self.google.default_alias], f"Auto ({self.google.default_alias.upper()})"
        if keys:
            name = sorted(keys)[0]
            return keys[name], f"Auto ({name.upper()})"
        raise ConfigError(f"API key ({alias or self.google.default_alias}) is not defined")

    @property
    def openai_base_url(self) -> str:
        return self.llm.openai_base_url or self.siliconflow.base_url


def _parse_google_config(data: dict) -> GoogleConfig:
    """Parse google section from config dict"""
    google_data = data.get("google", {})
    defaults = GoogleConfig()
    api_keys = dict(google_data.get("api_keys", {}))
    # Single-key shorthand: {"google": {"api_key": "..."}}
    if google_data.get("api_key"):
        api_keys.setdefault(DEFAULT_KEY_ALIAS, google_data["api_key"])
    return GoogleConfig(
        api_keys=api_keys,
        default_alias=google_data.get("default_alias", DEFAULT_KEY_ALIAS),
        chat_model=google_data.get("chat_model", defaults.chat_model),
        rerank_model=google_data.get("rerank_model", defaults.rerank_model),
        rerank_fallback_model=google_data.get("rerank_fallback_model", defaults.rerank_fallback_model),
        temperature=google_data.get("temperature", defaults.temperature),
        max_output_tokens=google_data.get("max_output_tokens", defaults.max_output_tokens),
    )


def _parse_siliconflow_config(data: dict) -> SiliconFlowConfig:
    """Parse siliconflow section from config dict"""
    sf_data = data.get("siliconflow", {})
    defaults = SiliconFlowConfig()
    return SiliconFlowConfig(
        api_key=sf_data.get("api_key", ""),
        base_url=sf_data.get("base_url", defaults.base_url),
        temperature=sf_data.get("temperature", defaults.temperature),
        search_tool_blocklist=sf_data.get("search_tool_blocklist", defaults.search_tool_blocklist),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        router_provider=llm_data.get("router_provider", defaults.router_provider),
        router_model=llm_data.get("router_model", defaults.router_model),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_base_url=llm_data.get("openai_base_url", ""),
    )


def _parse_router_config(data: dict) -> RouterConfig:
    """Parse router section from config dict"""
    router_data = data.get("router", {})
    return RouterConfig(
        enabled=router_data.get("enabled", True),
        short_query_threshold=router_data.get("short_query_threshold", 5),
        history_window=router_data.get("history_window", 4),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        match_count=retriever_data.get("match_count", 50),
        similarity_threshold=retriever_data.get("similarity_threshold", 0.5),
        large_context_topk=retriever_data.get("large_context_topk", 30),
        small_context_topk=retriever_data.get("small_context_topk", 10),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        model=embedding_data.get("model", "gemini-embedding-001"),
        dimensions=embedding_data.get("dimensions", 768),
        key_alias=embedding_data.get("key_alias", ""),
    )


def _parse_store_config(data: dict) -> StoreConfig:
    """Parse store section from config dict"""
    store_data = data.get("store", {})
    defaults = StoreConfig()
    return StoreConfig(
        url=store_data.get("url", ""),
        service_key=store_data.get("service_key", ""),
        search_rpc=store_data.get("search_rpc", defaults.search_rpc),
        config_table=store_data.get("config_table", defaults.config_table),
        chat_prompt_key=store_data.get("chat_prompt_key", defaults.chat_prompt_key),
        briefing_prompt_key=store_data.get("briefing_prompt_key", defaults.briefing_prompt_key),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8090),
    )


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> BriefchatConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.briefchat/config.json)
    3. Default values
    """
    config = BriefchatConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.google = _parse_google_config(data)
            config.siliconflow = _parse_siliconflow_config(data)
            config.llm = _parse_llm_config(data)
            config.router = _parse_router_config(data)
            config.retriever = _parse_retriever_config(data)
            config.embedding = _parse_embedding_config(data)
            config.store = _parse_store_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Google keys: GOOGLE_API_KEY is the default alias, GOOGLE_API_KEY_<ALIAS> adds more
    if os.getenv("GOOGLE_API_KEY"):
        config.google.api_keys[DEFAULT_KEY_ALIAS] = os.getenv("GOOGLE_API_KEY")
        config._env_sourced_keys.add(f"google.{DEFAULT_KEY_ALIAS}")
    for env_var, val in os.environ.items():
        if env_var.startswith("GOOGLE_API_KEY_") and val:
            alias = env_var[len("GOOGLE_API_KEY_"):].lower()
            config.google.api_keys[alias] = val
            config._env_sourced_keys.add(f"google.{alias}")
    if os.getenv("GOOGLE_DEFAULT_KEY_ALIAS"):
        config.google.default_alias = os.getenv("GOOGLE_DEFAULT_KEY_ALIAS").lower()

    sf_key = os.getenv("SILICONFLOW_API_KEY") or os.getenv("GUIJI_API_KEY")
    if sf_key:
        config.siliconflow.api_key = sf_key
        config._env_sourced_keys.add("siliconflow.api_key")
    if os.getenv("SILICONFLOW_BASE_URL"):
        config.siliconflow.base_url = os.getenv("SILICONFLOW_BASE_URL")

    # LLM env var overrides (target config.llm, track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_BASE_URL": "openai_base_url",
        "BRIEFCHAT_ROUTER_PROVIDER": "router_provider",
        "BRIEFCHAT_ROUTER_MODEL": "router_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(f"llm.{attr}")

    if os.getenv("BRIEFCHAT_ROUTER_ENABLED"):
        config.router.enabled = _env_flag(os.getenv("BRIEFCHAT_ROUTER_ENABLED"))

    if os.getenv("SUPABASE_URL"):
        config.store.url = os.getenv("SUPABASE_URL")
    store_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")
    if store_key:
        config.store.service_key = store_key
        config._env_sourced_keys.add("store.service_key")

    if os.getenv("BRIEFCHAT_PORT"):
        config.server.port = int(os.getenv("BRIEFCHAT_PORT"))

    return config


def save_config(config: BriefchatConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written
    as empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    api_keys = {
        alias: ("" if f"google.{alias}" in env_sourced else key)
        for alias, key in config.google.api_keys.items()
    }
    llm_section = {
        "router_provider": config.llm.router_provider,
        "router_model": config.llm.router_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "openai_api_key": config.llm.openai_api_key,
        "openai_base_url": config.llm.openai_base_url,
    }
    for key in ("anthropic_api_key", "openai_api_key"):
        if f"llm.{key}" in env_sourced:
            llm_section[key] = ""

    data = {
        "google": {
            "api_keys": api_keys,
            "default_alias": config.google.default_alias,
            "chat_model": config.google.chat_model,
            "rerank_model": config.google.rerank_model,
            "rerank_fallback_model": config.google.rerank_fallback_model,
            "temperature": config.google.temperature,
            "max_output_tokens": config.google.max_output_tokens,
        },
        "siliconflow": {
            "api_key": "" if "siliconflow.api_key" in env_sourced else config.siliconflow.api_key,
            "base_url": config.siliconflow.base_url,
            "temperature": config.siliconflow.temperature,
            "search_tool_blocklist": config.siliconflow.search_tool_blocklist,
        },
        "llm": llm_section,
        "router": {
            "enabled": config.router.enabled,
            "short_query_threshold": config.router.short_query_threshold,
            "history_window": config.router.history_window,
        },
        "retriever": {
            "match_count": config.retriever.match_count,
            "similarity_threshold": config.retriever.similarity_threshold,
            "large_context_topk": config.retriever.large_context_topk,
            "small_context_topk": config.retriever.small_context_topk,
        },
        "embedding": {
            "model": config.embedding.model,
            "dimensions": config.embedding.dimensions,
            "key_alias": config.embedding.key_alias,
        },
        "store": {
            "url": config.store.url,
            "service_key": "" if "store.service_key" in env_sourced else config.store.service_key,
            "search_rpc": config.store.search_rpc,
            "config_table": config.store.config_table,
            "chat_prompt_key": config.store.chat_prompt_key,
            "briefing_prompt_key": config.store.briefing_prompt_key,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
