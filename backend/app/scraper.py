"""
Restaurant website scraper: drives one Playwright session per attempt.

    load page -> SPA wait -> popups -> branding (parallel) -> navigate to menu
    -> popups -> location picker -> expand / click through categories
    -> close browser -> classify -> accept or retry

Every helper swallows its own errors. The only outcomes the caller sees are
a ScrapeResult or None.
"""

import asyncio
import logging

from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from app.branding import extract_colors, extract_logo
from app.classifier import classify_content
from app.config import get_settings
from app.expander import expand_menu_content
from app.models import ColorPalette, ContentClassification, ScrapeOptions, ScrapeResult
from app.navigation import handle_location_menus, navigate_to_menu
from app.page_utils import body_text, detect_spa, wait_for_menu_ready
from app.popups import dismiss_popups


logger = logging.getLogger(__name__)

_stealth = Stealth()

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--lang=en-US,en",
]

RETRY_BACKOFF_SECONDS = 2


def is_acceptable_content(
    classification: ContentClassification,
    content_length: int,
    min_length: int,
) -> bool:
    """Strict '>' on both clauses: (60, 0.6) is rejected, (61, 0.61) accepted."""
    if classification.score > 60 and classification.confidence > 0.6:
        return True
    return (
        content_length >= min_length
        and classification.score > 40
        and classification.confidence > 0.5
    )


async def _load(page, url: str, timeout: int) -> None:
    """networkidle first, domcontentloaded as the faster fallback."""
    try:
        await page.goto(url, wait_until="networkidle", timeout=timeout)
    except Exception as e:
        logger.info("[scraper] networkidle wait failed (%s), retrying with domcontentloaded", e)
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        await page.wait_for_timeout(2000)


async def _wait_for_spa(page) -> bool:
    """If the page is client-rendered and still thin, wait for prices or text."""
    if not await detect_spa(page):
        return False

    initial = await classify_content(await body_text(page))
    if initial.score > 60 and initial.confidence > 0.6:
        logger.info("[scraper] SPA already rendered menu-like content (%s)", initial.score)
        await page.wait_for_timeout(500)
    else:
        logger.info("[scraper] SPA detected, waiting for content")
        ready = await wait_for_menu_ready(page, min_prices=5, min_length=2000, timeout=10000)
        if not ready:
            logger.info("[scraper] SPA content wait timed out, continuing")
        await page.wait_for_timeout(1000)
    return True


async def _branding(page) -> tuple[str | None, ColorPalette | None]:
    logo, colors = await asyncio.gather(extract_logo(page), extract_colors(page))
    if colors is not None and colors.is_empty():
        colors = None
    return logo, colors


async def _scrape_once(url: str, options: ScrapeOptions) -> tuple[str, str | None, ColorPalette | None]:
    settings = get_settings()
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=options.headless, args=BROWSER_ARGS)
        try:
            context = await browser.new_context(
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                user_agent=options.user_agent or settings.user_agent,
                locale="en-US",
            )
            page = await context.new_page()
            await _stealth.apply_stealth_async(page)
            page.set_default_timeout(options.timeout)

            await _load(page, url, options.timeout)
            is_spa = await _wait_for_spa(page)
            await dismiss_popups(page)

            logo, colors = await _branding(page)

            await navigate_to_menu(page)
            await dismiss_popups(page)
            await handle_location_menus(page)

            text = await expand_menu_content(page, is_spa=is_spa or await detect_spa(page))
            return text, logo, colors
        finally:
            await browser.close()


async def scrape_restaurant_menu(url: str, options: ScrapeOptions | None = None) -> ScrapeResult | None:
    """
    Scrape `url` for menu text, logo and colors. Returns None when no attempt
    produced acceptable menu content.
    """
    options = options or ScrapeOptions.from_settings()
    attempts = max(1, options.max_retries)

    for attempt in range(1, attempts + 1):
        logger.info("[scraper] attempt %d/%d: %s", attempt, attempts, url)
        try:
            text, logo, colors = await _scrape_once(url, options)
        except Exception as e:
            logger.warning("[scraper] attempt %d failed: %s", attempt, e)
            text, logo, colors = "", None, None

        if text:
            classification = await classify_content(text)
            logger.info(
                "[scraper] %d chars, score=%s confidence=%.2f",
                len(text), classification.score, classification.confidence,
            )
            if is_acceptable_content(classification, len(text), options.min_content_length):
                return ScrapeResult(text=text, logo=logo, colors=colors)
            logger.info("[scraper] content rejected on attempt %d", attempt)

        if attempt < attempts:
            await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)

    logger.warning("[scraper] no acceptable menu content found at %s", url)
    return None
