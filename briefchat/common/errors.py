"""
Error types shared across the chat pipeline.

Recovered failures (intent classification, reranking) never leave their
component. Everything defined here is either raised to the caller or used
to recognise a recoverable condition.
"""

import re
from typing import Optional


_QUOTA_TEXT_RE = re.compile(r"\b429\b|quota|resource_exhausted", re.IGNORECASE)


class BriefchatError(Exception):
    """Base class for pipeline errors"""


class ConfigError(BriefchatError):
    """Missing credential or setting"""


class ParseError(BriefchatError):
    """A stage of LLM output parsing failed"""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class RetrievalError(BriefchatError):
    """Embedding or hybrid search failed"""


class TemplateNotFoundError(BriefchatError):
    """A prompt template is missing from the key-value store"""


class ProviderStreamError(BriefchatError):
    """Upstream chat provider returned an error or a broken stream"""

    def __init__(self, message: str, status: Optional[int] = None, provider: str = ""):
        prefix = f"{provider} API Error" if provider else "Provider Error"
        detail = f"{status} - {message}" if status is not None else message
        super().__init__(f"{prefix}: {detail}")
        self.status = status
        self.message = message
        self.provider = provider


class QuotaExceededError(ProviderStreamError):
    """Upstream rejected the call for rate limit or quota reasons"""


def is_quota_error(exc: BaseException) -> bool:
    """Recognise quota exhaustion across SDK error types.

    Checks HTTP-ish status attributes first (``status``, ``status_code``,
    ``code``), then falls back to the message text: a standalone 429, or
    the words quota or RESOURCE_EXHAUSTED.
    """
    if isinstance(exc, QuotaExceededError):
        return True
    for attr in ("status", "status_code", "code"):
        value = getattr(exc, attr, None)
        if value == 429:
            return True
    return bool(_QUOTA_TEXT_RE.search(str(exc)))
