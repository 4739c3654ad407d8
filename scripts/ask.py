#!/usr/bin/env python3
"""
Ask Script

Runs one chat turn from the command line and prints the streamed answer,
followed by the articles it was grounded on.

Usage:
    python scripts/ask.py "What did DeepSeek release this week?" [--model gemini-2.0-flash] [--no-search] [--small-talk]
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


async def ask(orchestrator, request) -> int:
    result = await orchestrator.orchestrate(request)
    print(f"[Ask] Intent: {result.intent.value} | Model: {result.model} | Provider: {result.provider}")
    if result.routing and result.routing.reasoning:
        print(f"[Ask] Routing: {result.routing.reasoning}")
    print()

    async for chunk in result.stream:
        print(chunk.text, end="", flush=True)
    print()

    if result.final_articles:
        print("\n[Ask] Sources:")
        for i, article in enumerate(result.final_articles, 1):
            print(f"  [{i}] {article.title} ({article.source_name or 'Unknown'}, {article.published_date})")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Ask the article corpus one question")
    parser.add_argument("question", type=str, help="The question to ask")
    parser.add_argument("--model", type=str, default="", help="Model id, optionally modelId@keyAlias")
    parser.add_argument("--no-search", action="store_true", help="Disable search tooling for RAG_LOCAL")
    parser.add_argument("--small-talk", action="store_true", help="Force DIRECT (skip routing and retrieval)")
    parser.add_argument("--verbose", action="store_true", help="Show pipeline logs")
    args = parser.parse_args()

    from dotenv import load_dotenv
    from briefchat.common.config import load_config
    from briefchat.common.schemas import ChatRequest, ConversationMessage
    from briefchat.responder.orchestrator import ChatOrchestrator

    load_dotenv()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    config = load_config()
    orchestrator = ChatOrchestrator.from_config(config)
    request = ChatRequest(
        messages=[ConversationMessage(role="user", content=args.question)],
        use_search=not args.no_search,
        model=args.model,
        is_small_talk_mode=args.small_talk,
    )

    try:
        code = asyncio.run(ask(orchestrator, request))
    except Exception as e:
        print(f"\n[Ask] ERROR: {e}")
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
