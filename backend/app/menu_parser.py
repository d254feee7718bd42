"""
Batch menu parser: one Claude call turns scraped text into a ParsedMenu.

The extraction rules (MENU_RULES) are shared with the streaming extractor
and the photo parser so all three produce the same shapes.
"""

import logging
import re

from pydantic import ValidationError

from app.llm import call_tool
from app.models import CUISINES, DIETARY_TAGS, MenuItem, ParsedMenu


logger = logging.getLogger(__name__)

MAX_MENU_CHARS = 60000


MENU_RULES = f"""Rules for Menu Items:
- Extract only food and drink items with their full details
- For each item, include the name, description (if any text describes the item), and price
- Descriptions may appear on the same line or nearby lines; capture any descriptive text about each item
- Include prices if available (keep currency symbols like $)
- Group items by category if possible, keeping the category structure the site uses
- If a field is not available, use null (not an empty string)
- Do not make up items. Only extract what you see in the text
- Duplicates (very similar names and the same price) should appear once, keeping the most descriptive name
- Items with different prices are NOT duplicates

Rules for Restaurant Description:
- A concise, appealing 2-3 sentence description of the restaurant
- Base it ONLY on information in the content (about us, our story, menu items)

Rules for Cuisine:
- Exactly ONE of: {", ".join(CUISINES)}
- Be specific when the menu clearly supports it (e.g. "Pakistani" over "Indian")

Rules for Tags (restaurant and item level):
- ONLY from: {", ".join(DIETARY_TAGS)}
- Only when clearly supported by the content. Be conservative

Formatting:
- Title case for item and category names ("Chicken Caesar Salad", "Main Courses")
- Keep abbreviations and brand names in their proper case ("BBQ", "Coca-Cola")
- Fix grammar and punctuation in descriptions"""


MENU_SCHEMA = {
    "type": "object",
    "properties": {
        "description": {"type": "string", "description": "2-3 sentence restaurant description"},
        "cuisine": {"type": "string", "enum": CUISINES},
        "tags": {"type": "array", "items": {"type": "string", "enum": DIETARY_TAGS}},
        "categories": {"type": "array", "items": {"type": "string"}},
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": ["string", "null"]},
                    "price": {"type": ["string", "null"]},
                    "category": {"type": ["string", "null"]},
                    "tags": {"type": "array", "items": {"type": "string", "enum": DIETARY_TAGS}},
                },
                "required": ["name"],
            },
        },
    },
    "required": ["description", "items", "categories"],
}


_BOILERPLATE_RE = re.compile(
    r"(?:privacy policy|terms of service|terms & conditions|cookie policy|all rights reserved)[^\n]*",
    re.IGNORECASE,
)
_URL_RE = re.compile(r"https?://\S+")
_SPACES_RE = re.compile(r"[ \t]+")
_DECORATION_RE = re.compile(r"([=\-_*])\1{4,}")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def preprocess_menu_content(content: str) -> str:
    """Strip legal boilerplate, URLs and decoration; one non-empty line per line."""
    cleaned = _BOILERPLATE_RE.sub("", content or "")
    cleaned = _URL_RE.sub("", cleaned)
    cleaned = _SPACES_RE.sub(" ", cleaned)
    cleaned = _DECORATION_RE.sub("", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n", cleaned)
    lines = [line.strip() for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line).strip()


def source_note(has_website_data: bool) -> str:
    if has_website_data:
        return "The content below was scraped from the restaurant's own website."
    return (
        "No website content was available; the content below comes from listings only. "
        "Base the description on the menu items and the restaurant name."
    )


def _clean_tags(tags) -> list[str]:
    if not isinstance(tags, list):
        return []
    return [t for t in tags if isinstance(t, str) and t in DIETARY_TAGS]


def _clean_cuisine(value) -> str | None:
    if not isinstance(value, str):
        return None
    for cuisine in CUISINES:
        if cuisine.lower() == value.strip().lower():
            return cuisine
    return None


def menu_from_dict(data: dict) -> ParsedMenu:
    """Validate raw model output into a ParsedMenu, dropping unusable items."""
    items = []
    for raw in data.get("items") or []:
        if not isinstance(raw, dict) or not str(raw.get("name") or "").strip():
            continue
        try:
            items.append(MenuItem(
                name=str(raw["name"]).strip(),
                description=raw.get("description") or None,
                price=raw.get("price") or None,
                category=raw.get("category") or None,
                tags=_clean_tags(raw.get("tags")),
            ))
        except ValidationError as e:
            logger.debug("[menu-parser] dropping invalid item %r: %s", raw.get("name"), e)

    categories = [c.strip() for c in data.get("categories") or [] if isinstance(c, str) and c.strip()]
    return ParsedMenu(
        items=items,
        categories=categories or None,
        description=data.get("description") or None,
        cuisine=_clean_cuisine(data.get("cuisine")),
        tags=_clean_tags(data.get("tags")) or None,
    )


async def parse_menu(content: str, restaurant_name: str, has_website_data: bool = False) -> ParsedMenu | None:
    """Returns None (logged) on any failure."""
    try:
        preprocessed = preprocess_menu_content(content)[:MAX_MENU_CHARS]
        logger.info("[menu-parser] parsing %d chars (from %d)", len(preprocessed), len(content or ""))

        prompt = (
            f"Extract menu items and restaurant information from the following content. Be concise.\n\n"
            f"Restaurant: {restaurant_name}\n{source_note(has_website_data)}\n\n"
            f"Text Content:\n{preprocessed}\n\n{MENU_RULES}"
        )
        data = await call_tool(
            prompt,
            tool_name="save_menu",
            description="Save the extracted restaurant menu.",
            input_schema=MENU_SCHEMA,
            system="You are a professional menu extraction expert with excellent attention to detail.",
            max_tokens=16000,
        )
        menu = menu_from_dict(data)
        logger.info("[menu-parser] parsed %d items", len(menu.items))
        return menu
    except Exception as e:
        logger.error("[menu-parser] parse failed: %s", e)
        return None
