"""
Embedding Service

Wraps the Gemini embedding model behind ``embed(text, purpose)``.
Query and document embeddings use different task types so that
asymmetric retrieval works as the model intends.
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger("briefchat.common.embedding_service")

# purpose -> Gemini task type
TASK_TYPES = {
    "query": "RETRIEVAL_QUERY",
    "document": "RETRIEVAL_DOCUMENT",
    "similarity": "SEMANTIC_SIMILARITY",
}


class EmbeddingService:
    """
    Embedding client for one credential.

    Constructed once at startup and handed to the retriever; holds no
    per-request state.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-embedding-001",
        dimensions: int = 768,
        key_label: str = "default",
        client=None,
    ):
        """
        Initialize embedding service.

        Args:
            api_key: Google API key
            model: Embedding model name
            dimensions: Output dimensionality
            key_label: Credential label used in error messages
            client: Prebuilt ``genai.Client`` (takes precedence over api_key)
        """
        self._model = model
        self._dimensions = dimensions
        self._key_label = key_label
        self._client = client

        if self._client is None and api_key:
            try:
                from google import genai
                self._client = genai.Client(api_key=api_key)
            except ImportError:
                logger.warning("google-genai package not installed")
            except Exception as e:
                logger.warning("Failed to init embedding client: %s", e)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str, purpose: str = "query") -> List[float]:
        """
        Generate an embedding for one text.

        Args:
            text: String to embed (newlines are collapsed)
            purpose: "query", "document" or "similarity"

        Returns:
            Embedding vector as a list of floats
        """
        if not self._client:
            raise RuntimeError("Embedding client not initialized")

        sanitized = text.replace("\n", " ").strip() if text else ""
        if not sanitized:
            raise ValueError("Cannot embed empty text")

        task_type = TASK_TYPES.get(purpose)
        if task_type is None:
            raise ValueError(f"Unknown embedding purpose: {purpose}")

        from google.genai import types

        try:
            result = await self._client.aio.models.embed_content(
                model=self._model,
                contents=sanitized,
                config=types.EmbedContentConfig(
                    task_type=task_type,
                    output_dimensionality=self._dimensions,
                ),
            )
        except Exception as e:
            logger.error(
                "Embedding failed | Key: %s | Task: %s | Text: %r",
                self._key_label, task_type, text[:50],
            )
            raise RuntimeError(f"Embedding generation failed (Key: {self._key_label}): {e}") from e

        values = result.embeddings[0].values
        # Ensure consistent return type
        if isinstance(values, np.ndarray):
            return values.tolist()
        return list(values)

