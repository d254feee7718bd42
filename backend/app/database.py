"""
Restaurant / menu persistence.

MenuStore is the narrow interface the pipeline needs; SupabaseMenuStore is
the production implementation over the Restaurant, Menu_Category and
Menu_Item tables. save_menu holds the category fallback rules.
"""

import logging
import re

from app.config import ConfigurationError, get_settings
from app.models import MenuItem, ParsedMenu


logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Menu"
# Leftover items sort last; a menu with no categories at all gets order 0
LEFTOVER_DISPLAY_ORDER = 999
FLAT_DISPLAY_ORDER = 0


def generate_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


def normalize_category(name: str | None) -> str:
    return " ".join((name or "").split()).lower()


class MenuStore:
    """Interface over the record store. All methods may raise on failure."""

    async def get_restaurant_by_place_id(self, place_id: str) -> dict | None:
        raise NotImplementedError

    async def insert_restaurant(self, data: dict) -> dict:
        """Insert and return at least {id, slug}."""
        raise NotImplementedError

    async def insert_category(self, restaurant_id: str, name: str, display_order: int) -> str:
        """Insert and return the category id."""
        raise NotImplementedError

    async def insert_items(self, restaurant_id: str, category_id: str, items: list[MenuItem]) -> int:
        """Insert items under one category, return how many were written."""
        raise NotImplementedError


def _get_client():
    """Get a Supabase client. Raises if credentials are missing."""
    settings = get_settings()
    url = settings.supabase_url
    key = settings.supabase_key
    if not url or not key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set in .env")
    from supabase import create_client
    return create_client(url, key)


class SupabaseMenuStore(MenuStore):
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_client()
        return self._client

    async def get_restaurant_by_place_id(self, place_id: str) -> dict | None:
        result = (
            self.client.table("Restaurant")
            .select("id, name, slug")
            .eq("google_place_id", place_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def insert_restaurant(self, data: dict) -> dict:
        result = self.client.table("Restaurant").insert(data).execute()
        if not result.data:
            raise RuntimeError("Failed to create restaurant")
        return result.data[0]

    async def insert_category(self, restaurant_id: str, name: str, display_order: int) -> str:
        result = (
            self.client.table("Menu_Category")
            .insert({"restaurant_id": restaurant_id, "name": name, "display_order": display_order})
            .execute()
        )
        if not result.data:
            raise RuntimeError(f"Failed to create category {name!r}")
        return result.data[0]["id"]

    async def insert_items(self, restaurant_id: str, category_id: str, items: list[MenuItem]) -> int:
        rows = [
            {
                "restaurant_id": restaurant_id,
                "category_id": category_id,
                "name": item.name or "Unknown Item",
                "description": item.description or None,
                "price": item.price or None,
            }
            for item in items
        ]
        if not rows:
            return 0
        result = self.client.table("Menu_Item").insert(rows).execute()
        return len(result.data or rows)


def restaurant_record(
    place_id: str,
    name: str,
    *,
    address=None,
    city=None,
    website_url=None,
    currency="USD",
    logo=None,
    colors=None,
    description=None,
    latitude=None,
    longitude=None,
    phone=None,
    rating=None,
) -> dict:
    return {
        "google_place_id": place_id,
        "name": name,
        "slug": generate_slug(name),
        "address": address,
        "city": city,
        "website_url": website_url,
        "currency": currency,
        "logo_url": logo,
        "description": description,
        "primary_colour": colors.primary if colors else None,
        "secondary_colour": colors.secondary if colors else None,
        "accent_colour": colors.accent if colors else None,
        "latitude": latitude,
        "longitude": longitude,
        "phone": phone,
        "rating": rating,
        "verified": False,
    }


async def _insert_group(store: MenuStore, restaurant_id: str, name: str, order: int,
                        items: list[MenuItem]) -> tuple[int, int] | None:
    """(1, items written), or None when the category itself could not be created."""
    try:
        category_id = await store.insert_category(restaurant_id, name, order)
    except Exception as e:
        logger.error("[database] failed to create category %r: %s", name, e)
        return None
    try:
        written = await store.insert_items(restaurant_id, category_id, items) if items else 0
    except Exception as e:
        logger.error("[database] failed to insert %d items into %r: %s", len(items), name, e)
        written = 0
    return 1, written


async def save_menu(store: MenuStore, restaurant_id: str, menu: ParsedMenu) -> tuple[int, int]:
    """
    Insert categories (display_order = position) and their items.
    Items whose category is missing, unknown or failed to insert go to a
    "Menu" category at 999; a menu with no categories at all goes to "Menu"
    at 0. Failures are logged and skipped. Returns (categories, items) written.
    """
    names: list[str] = []
    seen: set[str] = set()
    for name in menu.categories or []:
        key = normalize_category(name)
        if key and key not in seen:
            seen.add(key)
            names.append(name.strip())

    if not names:
        if not menu.items:
            return 0, 0
        return await _insert_group(
            store, restaurant_id, FALLBACK_CATEGORY, FLAT_DISPLAY_ORDER, list(menu.items),
        ) or (0, 0)

    grouped: dict[str, list[MenuItem]] = {normalize_category(n): [] for n in names}
    leftovers: list[MenuItem] = []
    for item in menu.items:
        key = normalize_category(item.category)
        if key in grouped:
            grouped[key].append(item)
        else:
            leftovers.append(item)

    total_categories = total_items = 0
    for order, name in enumerate(names):
        group = grouped[normalize_category(name)]
        result = await _insert_group(store, restaurant_id, name, order, group)
        if result is None:
            leftovers.extend(group)
            continue
        total_categories += result[0]
        total_items += result[1]

    if leftovers:
        created, written = await _insert_group(
            store, restaurant_id, FALLBACK_CATEGORY, LEFTOVER_DISPLAY_ORDER, leftovers,
        ) or (0, 0)
        total_categories += created
        total_items += written

    logger.info("[database] saved %d categories, %d items", total_categories, total_items)
    return total_categories, total_items
