"""
Prompt Assembler

Builds the message list sent to the answering model.

The intent decides everything here:
- DIRECT: persona system prompt, the conversation as-is, no corpus context
- RAG_LOCAL / SEARCH_WEB: corpus-grounded system prompt, prior turns, and the
  active query replaced by a context prompt that enumerates the articles
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from ..common.schemas import ConversationMessage, Intent, RetrievedArticle, Role

logger = logging.getLogger("briefchat.responder.prompt_builder")


DIRECT_PERSONA_PROMPT = """You are a Chief Architect / Product Director based in mainland China.
Your style: sharp, engineering-minded, down-to-earth, no PR jargon.
Answer the user's question directly. Do not use [N] citations and do not run a background check."""


CHAT_CONTEXT_PROMPT_TEMPLATE = """[Step 1: Local background check]
Below are {{COUNT}} local articles retrieved for this question. Treat them as the primary factual basis of your answer.

[Candidate local background articles]
{{ARTICLE_LIST}}

[Current user question]
{{QUERY}}

[Instructions (Chief Architect / Product Manager standard)]
1. **Citation format (CRITICAL)**: cite ONLY in the [N] format (e.g. [1]), where N is the article index above. Any other citation format is forbidden.
"""


NO_LOCAL_MATCHES = "(no matching local articles)"

ARTICLE_SEPARATOR = "\n\n---\n\n"

_PLACEHOLDER_RE = re.compile(r"\{\{(COUNT|ARTICLE_LIST|QUERY)\}\}")


def fill_template(template: str, values: Dict[str, str]) -> str:
    """Replace ``{{NAME}}`` placeholders in one pass.

    Substituted text is never rescanned, so an article that happens to
    contain ``{{QUERY}}`` stays literal.
    """
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def effective_search(intent: Intent, use_search: bool) -> bool:
    """Whether external search tooling is enabled for this turn."""
    if intent == Intent.DIRECT:
        return False
    if intent == Intent.SEARCH_WEB:
        return True
    if intent == Intent.RAG_LOCAL:
        return use_search
    raise ValueError(f"Unhandled intent: {intent!r}")


class PromptAssembler:
    """
    Assembles provider-ready message lists.

    The output is a plain list of ConversationMessage; provider adapters
    apply their own role mapping and system-message handling.
    """

    def __init__(
        self,
        persona_prompt: str = DIRECT_PERSONA_PROMPT,
        context_template: str = CHAT_CONTEXT_PROMPT_TEMPLATE,
    ):
        self._persona_prompt = persona_prompt
        self._context_template = context_template

    def assemble(
        self,
        intent: Intent,
        messages: Sequence[ConversationMessage],
        articles: Sequence[RetrievedArticle] = (),
        chat_template: Optional[str] = None,
        detailed: bool = False,
    ) -> List[ConversationMessage]:
        """
        Build the message list for one turn.

        Args:
            intent: Routed intent
            messages: The conversation, ending with the active user query
            articles: Retrieved articles (ignored for DIRECT)
            chat_template: Corpus-grounded system prompt (required unless DIRECT)
            detailed: Include category, keywords and verdict per article

        Returns:
            [system, *prior turns, active turn]
        """
        if not messages:
            raise ValueError("Message is required")

        if intent == Intent.DIRECT:
            return [
                ConversationMessage(role=Role.SYSTEM.value, content=self._persona_prompt),
                *messages,
            ]

        if intent in (Intent.RAG_LOCAL, Intent.SEARCH_WEB):
            if chat_template is None:
                raise ValueError(f"A chat template is required for {intent.value}")
            query = messages[-1].content
            return [
                ConversationMessage(
                    role=Role.SYSTEM.value,
                    content=self.render_chat_template(chat_template, len(articles)),
                ),
                *messages[:-1],
                ConversationMessage(
                    role=Role.USER.value,
                    content=self.build_context_prompt(query, articles, detailed=detailed),
                ),
            ]

        raise ValueError(f"Unhandled intent: {intent!r}")

    @staticmethod
    def render_chat_template(template: str, count: int) -> str:
        return template.replace("{{COUNT}}", str(count))

    def build_context_prompt(
        self,
        query: str,
        articles: Sequence[RetrievedArticle],
        detailed: bool = False,
    ) -> str:
        """Context prompt: article count, numbered article block and the query."""
        return fill_template(self._context_template, {
            "COUNT": str(len(articles)),
            "ARTICLE_LIST": self.format_articles(articles, detailed=detailed),
            "QUERY": query,
        })

    def format_articles(
        self,
        articles: Sequence[RetrievedArticle],
        detailed: bool = False,
    ) -> str:
        """
        Numbered article block; index N is the article's 1-based position.

        An empty list yields an explicit "no matches" line rather than an
        empty section.
        """
        if not articles:
            return NO_LOCAL_MATCHES

        blocks = []
        for i, a in enumerate(articles, 1):
            source = a.source_name or "Unknown"
            lines = [f"[Article index: [{i}]]", f"Title: {a.title}"]

            if detailed:
                verdict = self._format_verdict(a)
                lines.append(f"Source: {source} | {verdict}" if verdict else f"Source: {source}")
                lines.append(f"Date: {a.published_date}")
                lines.append(
                    f"Category: {a.category or 'Uncategorized'} | Keywords: {', '.join(a.keywords)}"
                )
            else:
                lines.append(f"Source: {source}")
                lines.append(f"Date: {a.published_date}")

            lines.extend([
                f"TLDR: {a.tldr or 'None'}",
                f"Summary: {a.summary or 'None'}",
                f"Highlights: {a.highlights or 'None'}",
                f"Critiques: {a.critiques or 'None'}",
                f"Market take: {a.market_take or 'None'}",
            ])
            blocks.append("\n".join(lines))

        return ARTICLE_SEPARATOR.join(blocks)

    @staticmethod
    def _format_verdict(article: RetrievedArticle) -> str:
        if article.verdict is None:
            return ""
        score = article.verdict.score
        score_text = "?" if score is None else f"{score:g}"
        return f"Score: {score_text}/10 ({article.verdict.importance or 'Normal'})"
