"""
Corpus Store Client

Talks to the article store's PostgREST interface: the hybrid search RPC
(lexical + vector ranking done server-side) and the key-value table that
holds system-prompt templates.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .schemas import RetrievedArticle

logger = logging.getLogger("briefchat.common.corpus_store")


class CorpusStore:
    """
    Read access to the summarized-article corpus.

    Every call opens its own short-lived HTTP client so concurrent requests
    share nothing but configuration.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        search_rpc: str = "hybrid_search_articles",
        config_table: str = "app_config",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize store client.

        Args:
            url: Project URL (``https://<ref>.supabase.co``)
            service_key: Service role key
            search_rpc: Name of the hybrid search function
            config_table: Key-value table holding prompt templates
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._base_url = url.rstrip("/") + "/rest/v1" if url else ""
        self._service_key = service_key
        self._search_rpc = search_rpc
        self._config_table = config_table
        self._timeout = timeout
        self._transport = transport

    @property
    def is_available(self) -> bool:
        """Check if store credentials are configured"""
        return bool(self._base_url and self._service_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
            "Cache-Control": "no-store",
        }

    def _client(self) -> httpx.AsyncClient:
        if not self.is_available:
            raise RuntimeError("Corpus store is not configured (url / service key missing)")
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def hybrid_search(
        self,
        query_text: str,
        query_embedding: List[float],
        match_count: int = 50,
    ) -> List[RetrievedArticle]:
        """
        Run the hybrid search RPC.

        Args:
            query_text: Raw query for the lexical half
            query_embedding: Query vector for the semantic half
            match_count: Maximum candidates to return

        Returns:
            Candidates in the order the store ranked them
        """
        payload = {
            "query_text": query_text.strip(),
            "query_embedding": query_embedding,
            "match_count": match_count,
        }
        async with self._client() as client:
            response = await client.post(f"/rpc/{self._search_rpc}", json=payload)
            response.raise_for_status()
            rows = response.json() or []

        articles = []
        for row in rows:
            article = self._to_article(row)
            if article is not None:
                articles.append(article)
        return articles

    def _to_article(self, row: Dict[str, Any]) -> Optional[RetrievedArticle]:
        """Convert a search row to RetrievedArticle, skipping rows without an id"""
        if row.get("id") is None:
            logger.warning("Skipping search row without id: %s", str(row)[:120])
            return None
        return RetrievedArticle.model_validate(row)

    async def get_prompt(self, key: str) -> Optional[str]:
        """Fetch a template from the key-value table, or None if absent."""
        params = {"key": f"eq.{key}", "select": "value"}
        async with self._client() as client:
            response = await client.get(f"/{self._config_table}", params=params)
            response.raise_for_status()
            rows = response.json() or []

        if not rows:
            return None
        return rows[0].get("value")

    async def put_prompt(self, key: str, value: str) -> None:
        """Insert or replace a template in the key-value table."""
        headers = {"Prefer": "resolution=merge-duplicates"}
        async with self._client() as client:
            response = await client.post(
                f"/{self._config_table}",
                json={"key": key, "value": value},
                headers=headers,
                params={"on_conflict": "key"},
            )
            response.raise_for_status()
