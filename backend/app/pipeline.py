"""
Endpoint flows: place lookup -> website scrape -> menu parse -> persistence.

scrape_and_save   batch parse, one JSON response, idempotent per place id
stream_and_save   streaming parse, yields SSE strings as menu chunks arrive
fetch_menu        scrape + parse only, nothing persisted
"""

import asyncio
import logging

from app.config import get_settings
from app.database import MenuStore, SupabaseMenuStore, restaurant_record, save_menu
from app.jobs import ScrapeJobRegistry, registry
from app.menu_parser import parse_menu
from app.menu_stream import MenuChunkFilter, stream_parse_menu
from app.models import (
    MenuChunk,
    ParsedMenu,
    PlaceDetails,
    ScrapeAndSaveRequest,
    ScrapeAndSaveResponse,
    ScrapeResult,
)
from app.photo_parser import parse_menu_from_photos
from app.places import fetch_place_details
from app.scraper import scrape_restaurant_menu
from app.sse_utils import error_event, menu_chunk_event, sse_event, status_event


logger = logging.getLogger(__name__)

NO_CONTENT = "No text content available."


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------

async def scrape_website(place: PlaceDetails) -> ScrapeResult | None:
    """Website scrape bounded by scrape_timeout. None when there's nothing usable."""
    if not place.website_url:
        logger.info("[pipeline] %s has no website", place.name)
        return None
    try:
        return await asyncio.wait_for(
            scrape_restaurant_menu(place.website_url),
            timeout=get_settings().scrape_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("[pipeline] scrape of %s timed out", place.website_url)
        return None
    except Exception as e:
        logger.error("[pipeline] scrape of %s failed: %s", place.website_url, e)
        return None


async def acquire_menu(place: PlaceDetails) -> tuple[ParsedMenu | None, ScrapeResult | None]:
    """Website first, listing photos when the website gave us nothing."""
    scraped = await scrape_website(place)
    menu = None
    if scraped and scraped.text:
        menu = await parse_menu(scraped.text, place.name, has_website_data=True)
    if (menu is None or not menu.items) and place.photo_urls:
        logger.info("[pipeline] falling back to listing photos for %s", place.name)
        from_photos = await parse_menu_from_photos(place.photo_urls, place.name)
        if from_photos and from_photos.items:
            menu = from_photos
    return menu, scraped


def _restaurant_insert(request: ScrapeAndSaveRequest, place: PlaceDetails, name: str,
                       scraped: ScrapeResult | None, description: str | None) -> dict:
    return restaurant_record(
        request.place_id,
        name,
        address=request.address or place.address,
        city=place.city,
        website_url=place.website_url,
        currency=place.currency,
        logo=scraped.logo if scraped else None,
        colors=scraped.colors if scraped else None,
        description=description,
        latitude=request.latitude,
        longitude=request.longitude,
        phone=place.phone or request.phone,
        rating=request.rating,
    )


# ---------------------------------------------------------------------------
# scrape-and-save
# ---------------------------------------------------------------------------

async def _perform_scrape(request: ScrapeAndSaveRequest, store: MenuStore) -> dict:
    place = await fetch_place_details(request.place_id)
    menu, scraped = await acquire_menu(place)

    restaurant = await store.insert_restaurant(
        _restaurant_insert(request, place, place.name, scraped, menu.description if menu else None)
    )
    logger.info("[pipeline] created restaurant %s (%s)", restaurant["id"], restaurant.get("slug"))

    total_categories, total_items = await save_menu(store, restaurant["id"], menu or ParsedMenu())
    message = "Restaurant and menu saved successfully" if total_items else "Restaurant saved, but no menu could be found"
    return ScrapeAndSaveResponse(
        restaurant_id=restaurant["id"],
        restaurant_slug=restaurant.get("slug"),
        total_categories=total_categories,
        total_items=total_items,
        message=message,
        already_exists=False,
    ).to_wire()


async def scrape_and_save(request: ScrapeAndSaveRequest, store: MenuStore | None = None,
                          jobs: ScrapeJobRegistry | None = None) -> dict:
    store = store or SupabaseMenuStore()
    jobs = jobs or registry
    place_id = request.place_id

    jobs.sweep_stale()
    in_progress = ScrapeAndSaveResponse(message="Scrape job in progress", in_progress=True).to_wire()
    if jobs.in_progress(place_id):
        await jobs.run(place_id, lambda: _perform_scrape(request, store))
        return in_progress

    existing = await store.get_restaurant_by_place_id(place_id)
    if existing:
        logger.info("[pipeline] %s already exists as %s", place_id, existing["id"])
        return ScrapeAndSaveResponse(
            restaurant_id=existing["id"],
            restaurant_slug=existing.get("slug"),
            message="Restaurant already exists",
            already_exists=True,
        ).to_wire()

    result, joined = await jobs.run(place_id, lambda: _perform_scrape(request, store))
    return in_progress if joined else result


# ---------------------------------------------------------------------------
# stream-and-save
# ---------------------------------------------------------------------------

class MenuCollector:
    """Rebuilds a ParsedMenu from the chunks that were streamed out."""

    def __init__(self):
        self.description: str | None = None
        self.cuisine: str | None = None
        self.tags: list[str] | None = None
        self.categories: list[str] = []
        self.items = []

    def add(self, chunk: MenuChunk) -> None:
        data = chunk.data
        if chunk.type == "description":
            self.description = data.description
        elif chunk.type == "cuisine":
            self.cuisine = data.cuisine
        elif chunk.type == "tags":
            self.tags = data.tags
        elif chunk.type == "category" and data.category_name:
            self.categories.append(data.category_name)
        elif chunk.type == "item" and data.item:
            self.items.append(data.item)

    def menu(self) -> ParsedMenu:
        return ParsedMenu(
            items=self.items,
            categories=self.categories or None,
            description=self.description,
            cuisine=self.cuisine,
            tags=self.tags,
        )


def chunks_from_menu(menu: ParsedMenu) -> list[MenuChunk]:
    """Replay a batch ParsedMenu through the same filter the stream uses."""
    chunk_filter = MenuChunkFilter()
    raw = []
    if menu.description:
        raw.append({"type": "description", "data": {"description": menu.description}})
    for name in menu.categories or []:
        raw.append({"type": "category", "data": {"categoryName": name}})
    for item in menu.items:
        if item.category:
            raw.append({"type": "category", "data": {"categoryName": item.category}})
        raw.append({"type": "item", "data": {"item": item.model_dump()}})
    return [c for c in (chunk_filter.accept(obj) for obj in raw) if c is not None]


async def _stream_chunks(content: str, restaurant_name: str, has_website_data: bool):
    """Run stream_parse_menu in a task and yield its chunks as they arrive."""
    queue: asyncio.Queue = asyncio.Queue()

    async def produce():
        try:
            await stream_parse_menu(content, restaurant_name, has_website_data, queue.put_nowait)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(produce())
    try:
        while True:
            chunk = await queue.get()
            if chunk is None:
                break
            yield chunk
        await task
    finally:
        if not task.done():
            task.cancel()


def _already_exists_event(existing: dict) -> str:
    return sse_event("complete", {
        "message": "Restaurant already exists",
        "alreadyExists": True,
        "restaurantId": existing["id"],
        "restaurantSlug": existing.get("slug"),
        "restaurant": existing,
    })


async def _perform_stream(request: ScrapeAndSaveRequest, store: MenuStore, emit) -> dict:
    """The registered job: scrape, stream the parse through emit(), persist."""
    name = request.restaurant_name
    place = await fetch_place_details(request.place_id)
    scraped = await scrape_website(place)
    if scraped and (scraped.logo or scraped.colors):
        emit(sse_event("branding", {"data": {
            "logo": scraped.logo,
            "colors": scraped.colors.model_dump(exclude_none=True) if scraped.colors else None,
        }}))

    emit(status_event("Crafting menu...", 2))

    collector = MenuCollector()
    website_text = scraped.text if scraped else ""
    if website_text or not place.photo_urls:
        async for chunk in _stream_chunks(website_text or NO_CONTENT, name, bool(website_text)):
            collector.add(chunk)
            emit(menu_chunk_event(chunk.to_wire()))
    else:
        from_photos = await parse_menu_from_photos(place.photo_urls, name)
        for chunk in chunks_from_menu(from_photos or ParsedMenu()):
            collector.add(chunk)
            emit(menu_chunk_event(chunk.to_wire()))

    # scrape-and-save may have saved this place while we were streaming
    existing = await store.get_restaurant_by_place_id(request.place_id)
    if existing:
        logger.info("[pipeline] %s was saved during the stream, not inserting", request.place_id)
        emit(_already_exists_event(existing))
        return existing

    menu = collector.menu()
    restaurant = await store.insert_restaurant(
        _restaurant_insert(request, place, name, scraped, menu.description)
    )
    total_categories, total_items = await save_menu(store, restaurant["id"], menu)

    emit(sse_event("complete", {
        "message": "Restaurant saved successfully!",
        "restaurantId": restaurant["id"],
        "restaurantSlug": restaurant.get("slug"),
        "totalCategories": total_categories,
        "totalItems": total_items,
    }))
    return restaurant


async def stream_and_save(request: ScrapeAndSaveRequest, store: MenuStore | None = None,
                          jobs: ScrapeJobRegistry | None = None):
    """
    Async generator of SSE strings. Errors become a final 'error' event.

    The work runs as the in-flight job for the place id; a concurrent request
    for the same place waits for it and answers from the store.
    """
    try:
        store = store or SupabaseMenuStore()
        jobs = jobs or registry
        place_id = request.place_id

        yield status_event("Finding menu...", 1)

        jobs.sweep_stale()
        if not jobs.in_progress(place_id):
            existing = await store.get_restaurant_by_place_id(place_id)
            if existing:
                yield _already_exists_event(existing)
                return

        if jobs.in_progress(place_id):
            await jobs.join(place_id)
            existing = await store.get_restaurant_by_place_id(place_id)
            if existing:
                yield _already_exists_event(existing)
            else:
                yield error_event("Scrape job for this restaurant did not finish")
            return

        queue: asyncio.Queue = asyncio.Queue()
        task = jobs.start(place_id, _perform_stream(request, store, queue.put_nowait))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event
        await task
    except Exception as e:
        logger.error("[pipeline] stream-and-save failed: %s", e)
        yield error_event(str(e))


# ---------------------------------------------------------------------------
# menu (no persistence)
# ---------------------------------------------------------------------------

async def fetch_menu(place_id: str) -> dict:
    place = await fetch_place_details(place_id)
    menu, scraped = await acquire_menu(place)
    colors = scraped.colors if scraped else None
    return {
        "restaurant": {
            "name": place.name,
            "websiteUrl": place.website_url,
            "city": place.city,
            "currency": place.currency,
            "logo": scraped.logo if scraped else None,
            "colors": colors.model_dump(exclude_none=True) if colors else None,
        },
        "menu": (menu or ParsedMenu()).model_dump(exclude_none=True),
    }
