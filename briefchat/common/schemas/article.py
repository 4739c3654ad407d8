"""
Article Schema

Articles as returned by the corpus hybrid search. The store may return
camelCase or snake_case columns; both are accepted.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Verdict(BaseModel):
    """Editorial verdict attached during summarization"""
    score: Optional[float] = None
    importance: Optional[str] = None


class RetrievedArticle(BaseModel):
    """A candidate article with its hybrid-search relevance score"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    source_name: str = Field(default="", validation_alias=AliasChoices("sourceName", "source_name"))
    link: Optional[str] = None
    published: Optional[str] = None
    category: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    tldr: Optional[str] = None
    summary: Optional[str] = None
    highlights: Optional[str] = None
    critiques: Optional[str] = None
    market_take: Optional[str] = Field(default=None, validation_alias=AliasChoices("marketTake", "market_take"))
    verdict: Optional[Verdict] = None
    similarity: float = Field(default=0.0, description="Hybrid search relevance in [0, 1]")

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [k.strip() for k in value.split(",") if k.strip()]
        return value

    @field_validator("similarity", mode="before")
    @classmethod
    def _similarity_default(cls, value):
        return 0.0 if value is None else value

    @property
    def published_date(self) -> str:
        """Date part of ``published`` for display, or N/A"""
        if not self.published:
            return "N/A"
        try:
            return datetime.fromisoformat(self.published.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            return self.published

    def citation_metadata(self) -> dict:
        """Fields the client needs to render [N] citations"""
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "published": self.published,
        }
