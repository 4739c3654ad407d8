#!/usr/bin/env python3
"""
Configure Script

Shows or updates ~/.briefchat/config.json. Keys that come from environment
variables are left out of the written file.

Usage:
    python scripts/configure.py show
    python scripts/configure.py set --google-key default=AIza... --google-key alok=AIza...
    python scripts/configure.py set --siliconflow-key sk-... --chat-model gemini-2.5-pro
    python scripts/configure.py set --store-url https://<ref>.supabase.co --store-key eyJ... --no-router
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def mask(secret: str) -> str:
    if not secret:
        return "(not set)"
    return secret[:4] + "..." if len(secret) > 8 else "***"


def show(config) -> None:
    print(f"[Config] Google keys: {', '.join(f'{a}={mask(k)}' for a, k in config.google.api_keys.items()) or '(none)'}")
    print(f"[Config] Default alias: {config.google.default_alias} | Chat model: {config.google.chat_model}")
    print(f"[Config] SiliconFlow key: {mask(config.siliconflow.api_key)} | Base URL: {config.siliconflow.base_url}")
    print(f"[Config] Router: {'on' if config.router.enabled else 'off'} "
          f"({config.llm.router_provider} / {config.llm.router_model})")
    print(f"[Config] Store: {config.store.url or '(not set)'} | Key: {mask(config.store.service_key)}")
    print(f"[Config] Server: {config.server.host}:{config.server.port}")


def apply_updates(config, args) -> int:
    """Copy command-line values onto the config; returns the number of changes."""
    changes = 0
    for pair in args.google_key or []:
        alias, sep, key = pair.partition("=")
        if not sep or not alias.strip() or not key.strip():
            raise ValueError(f"--google-key expects alias=key, got {pair!r}")
        config.google.api_keys[alias.strip().lower()] = key.strip()
        changes += 1

    updates = [
        ("default_alias", config.google, args.default_alias),
        ("chat_model", config.google, args.chat_model),
        ("api_key", config.siliconflow, args.siliconflow_key),
        ("url", config.store, args.store_url),
        ("service_key", config.store, args.store_key),
        ("enabled", config.router, args.router),
    ]
    for attr, section, value in updates:
        if value is not None:
            setattr(section, attr, value)
            changes += 1
    return changes


def main():
    parser = argparse.ArgumentParser(description="Show or update the Briefchat configuration")
    parser.add_argument("action", choices=["show", "set"], help="What to do")
    parser.add_argument("--google-key", action="append", metavar="ALIAS=KEY", help="Add or replace a Gemini key")
    parser.add_argument("--default-alias", type=str, default=None, help="Alias used when a request names none")
    parser.add_argument("--chat-model", type=str, default=None, help="Model used when a request names none")
    parser.add_argument("--siliconflow-key", type=str, default=None, help="SiliconFlow API key")
    parser.add_argument("--store-url", type=str, default=None, help="Supabase project URL")
    parser.add_argument("--store-key", type=str, default=None, help="Supabase service role key")
    parser.add_argument("--router", dest="router", action="store_true", default=None, help="Enable intent routing")
    parser.add_argument("--no-router", dest="router", action="store_false", help="Disable intent routing")
    args = parser.parse_args()

    from briefchat.common.config import CONFIG_PATH, load_config, save_config

    config = load_config()
    if args.action == "show":
        print(f"[Config] File: {CONFIG_PATH}")
        show(config)
        return

    try:
        changes = apply_updates(config, args)
    except ValueError as e:
        print(f"[Config] ERROR: {e}")
        sys.exit(1)

    if not changes:
        print("[Config] Nothing to change")
        return

    save_config(config)
    print(f"[Config] Saved {changes} change(s) to {CONFIG_PATH}")
    show(config)


if __name__ == "__main__":
    main()
