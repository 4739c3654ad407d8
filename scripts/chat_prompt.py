#!/usr/bin/env python3
"""
Chat Prompt Sync Script

Downloads a system-prompt template from the key-value store to a local file
for editing, or uploads a local file back. The chat template is the default;
--briefing selects the briefing template. The chat template may contain
``{{COUNT}}``, which is replaced with the number of articles in context.

Usage:
    python scripts/chat_prompt.py pull [--out chat_prompt.md] [--key gemini_chat_prompt]
    python scripts/chat_prompt.py push [--file chat_prompt.md] [--key gemini_chat_prompt] [--dry-run]
    python scripts/chat_prompt.py pull --briefing --out briefing_prompt.md
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


async def pull(store, key: str, out_path: Path) -> int:
    template = await store.get_prompt(key)
    if template is None:
        print(f"[Prompt] ERROR: '{key}' not found in store")
        return 1

    out_path.write_text(template, encoding="utf-8")
    print(f"[Prompt] Saved '{key}' ({len(template)} chars) to {out_path}")
    return 0


async def push(store, key: str, in_path: Path, dry_run: bool, expect_count: bool = True) -> int:
    if not in_path.exists():
        print(f"[Prompt] ERROR: {in_path} does not exist")
        return 1

    template = in_path.read_text(encoding="utf-8")
    if not template.strip():
        print(f"[Prompt] ERROR: {in_path} is empty")
        return 1
    if expect_count and "{{COUNT}}" not in template:
        print("[Prompt] Warning: template has no {{COUNT}} placeholder")

    if dry_run:
        print(f"[Prompt] DRY RUN - would upload {len(template)} chars to '{key}'")
        return 0

    await store.put_prompt(key, template)
    print(f"[Prompt] Uploaded {in_path} to '{key}' ({len(template)} chars)")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Pull or push the chat system-prompt template")
    parser.add_argument("action", choices=["pull", "push"], help="Direction of the sync")
    parser.add_argument("--key", type=str, default=None, help="Template key (default: chat prompt key from config)")
    parser.add_argument("--briefing", action="store_true", help="Sync the briefing template instead of the chat template")
    parser.add_argument("--out", type=Path, default=Path("chat_prompt.md"), help="Output file for pull")
    parser.add_argument("--file", type=Path, default=Path("chat_prompt.md"), help="Input file for push")
    parser.add_argument("--dry-run", action="store_true", help="Validate push without uploading")
    args = parser.parse_args()

    from dotenv import load_dotenv
    from briefchat.common.config import load_config
    from briefchat.common.corpus_store import CorpusStore

    load_dotenv()
    config = load_config()
    store = CorpusStore(
        url=config.store.url,
        service_key=config.store.service_key,
        config_table=config.store.config_table,
    )
    if not store.is_available:
        print("[Prompt] ERROR: SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")
        sys.exit(1)

    default_key = config.store.briefing_prompt_key if args.briefing else config.store.chat_prompt_key
    key = args.key or default_key
    try:
        if args.action == "pull":
            code = asyncio.run(pull(store, key, args.out))
        else:
            code = asyncio.run(push(store, key, args.file, args.dry_run, expect_count=not args.briefing))
    except Exception as e:
        print(f"[Prompt] ERROR: {e}")
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
