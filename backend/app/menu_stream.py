"""
Streaming structured extractor.

Claude is asked for NDJSON: one event object per line, five shapes:

    {"type": "description", "data": {"description": "..."}}
    {"type": "cuisine",     "data": {"cuisine": "Thai"}}
    {"type": "tags",        "data": {"tags": ["vegetarian"]}}
    {"type": "category",    "data": {"categoryName": "Starters"}}
    {"type": "item",        "data": {"item": {"name": ..., "description": ..., "price": ..., "category": ..., "tags": [...]}}}

Text deltas are split into lines (NDJSONLineBuffer), each line is parsed and
passed through MenuChunkFilter, and only novel, valid events reach on_chunk.
Dedup state lives for one stream_parse_menu call.
"""

import inspect
import json
import logging

from app.config import ConfigurationError, get_settings
from app.llm import get_client
from app.menu_parser import MENU_RULES, preprocess_menu_content, source_note
from app.models import CUISINES, DIETARY_TAGS, MenuChunk, MenuChunkData, MenuItem


logger = logging.getLogger(__name__)


class MenuStreamError(Exception):
    """The LLM stream itself failed (transport, API error)."""


STREAM_FORMAT = """OUTPUT FORMAT (strict):
Output NDJSON: one JSON object per line, nothing else. No markdown, no arrays, no commentary.
Each line is exactly one of:
{"type":"description","data":{"description":"..."}}
{"type":"cuisine","data":{"cuisine":"..."}}
{"type":"tags","data":{"tags":["..."]}}
{"type":"category","data":{"categoryName":"..."}}
{"type":"item","data":{"item":{"name":"...","description":null,"price":null,"category":"...","tags":[]}}}

Ordering:
- Emit the description first. Only emit another description line if it changes
- Emit cuisine at most once
- Emit restaurant tags at most once, and only when clearly supported
- Emit a category line BEFORE any item that belongs to it
- Emit an item as soon as its name is known; unknown fields are null
- Never invent data that is not in the text"""


# ---------------------------------------------------------------------------
# Line buffering
# ---------------------------------------------------------------------------

class NDJSONLineBuffer:
    """Accumulates text deltas and hands back complete lines."""

    def __init__(self):
        self._buffer = ""

    def feed(self, delta: str) -> list[str]:
        self._buffer += delta or ""
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return [line.strip() for line in lines if line.strip()]

    def flush(self) -> list[str]:
        rest, self._buffer = self._buffer.strip(), ""
        return [rest] if rest else []


# ---------------------------------------------------------------------------
# Dedup / validation
# ---------------------------------------------------------------------------

def normalize_name(name: str) -> str:
    return " ".join((name or "").split()).lower()


def normalize_price(price) -> str | None:
    if price is None:
        return None
    price = str(price).strip()
    return price or None


def title_case(name: str) -> str:
    """Capitalize each word's first letter; leaves 'BBQ' and 'McDonald' alone."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split())


def _clean_tags(tags) -> list[str]:
    if not isinstance(tags, list):
        return []
    seen = []
    for tag in tags:
        if isinstance(tag, str) and tag.strip().lower() in DIETARY_TAGS and tag.strip().lower() not in seen:
            seen.append(tag.strip().lower())
    return seen


class MenuChunkFilter:
    """
    Applies the per-session dedup rules to parsed NDJSON objects:
      - description only when it differs from the last one emitted
      - cuisine once, and only from the cuisine vocabulary
      - restaurant tags once, non-empty, vocabulary only
      - categories once per normalized name
      - items once per (normalized name, price); a later duplicate with a
        longer description upgrades the kept item without a new event
    """

    def __init__(self):
        self.description: str | None = None
        self.cuisine: str | None = None
        self.tags: list[str] | None = None
        self.categories: dict[str, str] = {}
        self.items: dict[tuple[str, str | None], MenuItem] = {}

    def accept(self, obj) -> MenuChunk | None:
        if not isinstance(obj, dict):
            return None
        kind = obj.get("type")
        data = obj.get("data")
        if not isinstance(data, dict):
            return None

        if kind == "description":
            return self._description(data.get("description"))
        if kind == "cuisine":
            return self._cuisine(data.get("cuisine"))
        if kind == "tags":
            return self._tags(data.get("tags"))
        if kind == "category":
            return self._category(data.get("categoryName") or data.get("category_name"))
        if kind == "item":
            return self._item(data.get("item"))
        return None

    def _description(self, value) -> MenuChunk | None:
        if not isinstance(value, str) or not value.strip():
            return None
        value = value.strip()
        if value == self.description:
            return None
        self.description = value
        return MenuChunk(type="description", data=MenuChunkData(description=value))

    def _cuisine(self, value) -> MenuChunk | None:
        if self.cuisine is not None or not isinstance(value, str):
            return None
        match = next((c for c in CUISINES if c.lower() == value.strip().lower()), None)
        if match is None:
            logger.debug("[menu-stream] ignoring unknown cuisine %r", value)
            return None
        self.cuisine = match
        return MenuChunk(type="cuisine", data=MenuChunkData(cuisine=match))

    def _tags(self, value) -> MenuChunk | None:
        if self.tags is not None:
            return None
        tags = _clean_tags(value)
        if not tags:
            return None
        self.tags = tags
        return MenuChunk(type="tags", data=MenuChunkData(tags=tags))

    def _category(self, value) -> MenuChunk | None:
        if not isinstance(value, str) or not value.strip():
            return None
        key = normalize_name(value)
        if key in self.categories:
            return None
        name = title_case(value.strip())
        self.categories[key] = name
        return MenuChunk(type="category", data=MenuChunkData(category_name=name))

    def resolve_category(self, value) -> str | None:
        """Canonical name of an already-emitted category, else None."""
        if not isinstance(value, str):
            return None
        return self.categories.get(normalize_name(value))

    def _item(self, raw) -> MenuChunk | None:
        if not isinstance(raw, dict):
            return None
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            return None

        price = normalize_price(raw.get("price"))
        description = raw.get("description")
        description = description.strip() if isinstance(description, str) and description.strip() else None
        key = (normalize_name(name), price)

        existing = self.items.get(key)
        if existing is not None:
            if description and len(description) > len(existing.description or ""):
                existing.description = description
            return None

        category = raw.get("category")
        category = category.strip() if isinstance(category, str) and category.strip() else None
        # Known categories get their canonical spelling; unknown ones are left for the caller
        category = self.resolve_category(category) or category

        item = MenuItem(
            name=" ".join(name.split()),
            description=description,
            price=price,
            category=category,
            tags=_clean_tags(raw.get("tags")),
        )
        self.items[key] = item
        return MenuChunk(type="item", data=MenuChunkData(item=item))


def parse_line(line: str):
    """JSON object for one NDJSON line, or None (logged) when malformed."""
    line = line.strip()
    if not line or line.startswith("```"):
        return None
    if line.endswith(","):
        line = line[:-1]
    try:
        obj = json.loads(line)
    except json.JSONDecodeError:
        logger.warning("[menu-stream] skipping malformed line: %s", line[:200])
        return None
    if not isinstance(obj, dict):
        logger.warning("[menu-stream] skipping non-object line: %s", line[:200])
        return None
    return obj


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_stream_prompt(content: str, restaurant_name: str, has_website_data: bool) -> str:
    return (
        f"Extract menu items and restaurant information from the following content.\n\n"
        f"Restaurant: {restaurant_name}\n{source_note(has_website_data)}\n\n"
        f"Text Content:\n{content}\n\n{MENU_RULES}\n\n{STREAM_FORMAT}"
    )


async def _deliver(on_chunk, chunk: MenuChunk) -> None:
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


async def stream_parse_menu(raw_text: str, restaurant_name: str, has_website_data: bool, on_chunk) -> None:
    """
    Stream NDJSON events for `raw_text` into on_chunk(MenuChunk).
    on_chunk may be a plain function or a coroutine function.
    Raises MenuStreamError if the stream fails; malformed lines are skipped.
    """
    client = get_client()  # ConfigurationError propagates as-is
    preprocessed = preprocess_menu_content(raw_text)
    logger.info("[menu-stream] starting parse (%d chars)", len(preprocessed))

    chunk_filter = MenuChunkFilter()
    line_buffer = NDJSONLineBuffer()
    emitted = 0

    async def handle(lines: list[str]) -> None:
        nonlocal emitted
        for line in lines:
            obj = parse_line(line)
            if obj is None:
                continue
            chunk = chunk_filter.accept(obj)
            if chunk is not None:
                emitted += 1
                await _deliver(on_chunk, chunk)

    try:
        async with client.messages.stream(
            model=get_settings().default_model,
            max_tokens=16000,
            system="You are a professional menu extraction expert. You output NDJSON only.",
            messages=[{
                "role": "user",
                "content": build_stream_prompt(preprocessed, restaurant_name, has_website_data),
            }],
        ) as stream:
            async for delta in stream.text_stream:
                await handle(line_buffer.feed(delta))
        await handle(line_buffer.flush())
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error("[menu-stream] stream failed: %s", e)
        raise MenuStreamError(str(e)) from e

    logger.info(
        "[menu-stream] done: %d events, %d items across %d categories",
        emitted, len(chunk_filter.items), len(chunk_filter.categories),
    )
