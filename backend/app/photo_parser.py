"""Menu extraction from listing photos (menu boards, printed menus)."""

import logging

from app.config import get_settings
from app.llm import complete_json
from app.menu_parser import MENU_RULES, menu_from_dict
from app.models import ParsedMenu


logger = logging.getLogger(__name__)

MAX_PHOTOS = 5

PHOTO_SYSTEM = (
    "You are a menu extraction assistant. Analyze restaurant photos and extract menu items. "
    "Only extract items from photos that show menus, menu boards, or price lists. "
    "Ignore photos of food, interiors, or exteriors."
)


def _photo_prompt(restaurant_name: str) -> str:
    return (
        f"Restaurant: {restaurant_name}\n\n"
        "Extract menu items if any of these photos show a menu. Respond with ONLY a JSON object:\n"
        '{"description": "...", "categories": ["..."], "items": [{"name": "...", "description": null, '
        '"price": null, "category": null, "tags": []}]}\n\n'
        "If no photo shows a menu, return an empty items array.\n\n"
        f"{MENU_RULES}"
    )


async def parse_menu_from_photos(photo_urls: list[str], restaurant_name: str) -> ParsedMenu | None:
    """Returns None when there are no photos or the call fails."""
    if not photo_urls:
        logger.info("[photo-parser] no photos available")
        return None

    try:
        urls = photo_urls[:MAX_PHOTOS]
        logger.info("[photo-parser] analyzing %d photos", len(urls))
        content = [{"type": "image", "source": {"type": "url", "url": url}} for url in urls]
        content.append({"type": "text", "text": _photo_prompt(restaurant_name)})

        data = await complete_json(
            content,
            system=PHOTO_SYSTEM,
            model=get_settings().vision_model,
            max_tokens=4000,
        )
        if data is None:
            logger.error("[photo-parser] response was not a JSON object")
            return None

        menu = menu_from_dict(data)
        logger.info("[photo-parser] parsed %d items from photos", len(menu.items))
        return menu
    except Exception as e:
        logger.error("[photo-parser] failed: %s", e)
        return None
