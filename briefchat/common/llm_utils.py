"""Shared utilities for parsing LLM responses.

Parsing runs in explicit stages so each one can be tested on its own:

1. ``strip_reasoning``  - drop <think>...</think> blocks (and code fences)
2. ``extract_json_object`` - find the first balanced top-level {...}
3. ``parse_llm_json`` - json.loads the extracted object

Any failing stage raises ``ParseError`` naming the stage.
"""

from __future__ import annotations

import json
import re

from .errors import ParseError

REASONING_OPEN = "<think>"
REASONING_CLOSE = "</think>"

_REASONING_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>")
_CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_reasoning(raw: str) -> str:
    """Remove reasoning blocks and markdown code fences."""
    if raw is None:
        raise ParseError("strip", "no text to parse")
    text = _REASONING_BLOCK_RE.sub("", raw)
    # Some models omit the opening marker; everything before a stray
    # closing marker is still reasoning.
    if REASONING_CLOSE in text:
        text = text.split(REASONING_CLOSE)[-1]
    text = _CODE_FENCE_RE.sub("", text)
    return text.strip()


def extract_json_object(text: str) -> str:
    """Return the first balanced top-level ``{...}`` substring.

    Braces inside JSON string literals are ignored, so a reasoning field
    like ``"use {x}"`` does not end the object early.
    """
    start = text.find("{")
    if start < 0:
        raise ParseError("extract", "no JSON object found")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    raise ParseError("extract", "unbalanced braces")


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Handles reasoning blocks, code fences and commentary around the object.
    """
    text = strip_reasoning(raw)
    candidate = extract_json_object(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError("decode", str(e)) from e
    if not isinstance(data, dict):
        raise ParseError("decode", f"expected an object, got {type(data).__name__}")
    return data


def clean_reasoning_content(content: str) -> str:
    """Drop the reasoning segment from a fully generated answer."""
    if not content:
        return ""
    if REASONING_CLOSE in content:
        return content.split(REASONING_CLOSE)[-1].strip()
    return _REASONING_BLOCK_RE.sub("", content).strip()
