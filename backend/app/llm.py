"""
Thin wrapper around the Anthropic client.

Three call shapes are used by the pipeline:
  - complete_text:  plain streamed completion, accumulated into a string
  - complete_json:  same, then parsed as a JSON object (fences tolerated)
  - call_tool:      forced tool_use, used when the answer must match a schema
"""

import json
import os

import anthropic

from app.config import ConfigurationError, get_settings


_client = None


def get_client() -> anthropic.AsyncAnthropic:
    global _client
    if _client is None:
        api_key = os.getenv("ANTHROPIC_API_KEY") or get_settings().anthropic_api_key
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY must be set in the environment or .env")
        _client = anthropic.AsyncAnthropic(api_key=api_key)
    return _client


def set_client(client) -> None:
    """Swap the shared client (tests inject fakes through this)."""
    global _client
    _client = client


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from Claude output."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_json_object(text: str) -> dict | None:
    """Try to extract a JSON object from text that may have extra content."""
    cleaned = strip_code_fences(text)
    try:
        result = json.loads(cleaned)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    # Outermost { ... } using string-aware brace matching
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        c = text[i]
        if escape:
            escape = False
            continue
        if c == "\\":
            escape = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                try:
                    result = json.loads(text[start:i + 1])
                except json.JSONDecodeError:
                    return None
                return result if isinstance(result, dict) else None
    return None


async def complete_text(
    prompt: str | list,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int = 4000,
) -> str:
    client = get_client()
    kwargs = {
        "model": model or get_settings().default_model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    if system:
        kwargs["system"] = system

    text = ""
    async with client.messages.stream(**kwargs) as stream:
        async for chunk in stream.text_stream:
            text += chunk
    return text


async def complete_json(
    prompt: str | list,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int = 4000,
) -> dict | None:
    text = await complete_text(prompt, system=system, model=model, max_tokens=max_tokens)
    return extract_json_object(text)


async def call_tool(
    prompt: str | list,
    tool_name: str,
    description: str,
    input_schema: dict,
    system: str | None = None,
    model: str | None = None,
    max_tokens: int = 1000,
) -> dict:
    """
    Force Claude to answer through a single tool whose input_schema is the
    output contract. Returns the tool input, raises ValueError if none came back.
    """
    client = get_client()
    kwargs = {
        "model": model or get_settings().default_model,
        "max_tokens": max_tokens,
        "tools": [{
            "name": tool_name,
            "description": description,
            "input_schema": input_schema,
        }],
        "tool_choice": {"type": "tool", "name": tool_name},
        "messages": [{"role": "user", "content": prompt}],
    }
    if system:
        kwargs["system"] = system

    response = await client.messages.create(**kwargs)
    for block in response.content:
        if getattr(block, "type", None) == "tool_use" and block.name == tool_name:
            return dict(block.input)
    raise ValueError(f"Claude did not call {tool_name}")
