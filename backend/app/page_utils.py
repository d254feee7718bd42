"""
Small Playwright helpers shared by the scraper components.

Elements chosen inside page.evaluate() are tagged with a data attribute so
Python can click them through a real locator (trusted events) instead of
el.click() in page context.
"""

import logging
import re


logger = logging.getLogger(__name__)

MARK_ATTR = "data-scrape-target"
MARK_SELECTOR = f"[{MARK_ATTR}]"

PRICE_PATTERN = r"[$€£]\s?\d{1,4}(?:[.,]\d{2})?"

SPA_MARKERS_JS = r'''() => {
    const markers = [
        '#__next', '#__nuxt', '#root', '#app', '[data-reactroot]', '[ng-version]',
        '[data-v-app]', '#svelte', '[data-server-rendered]'
    ];
    if (markers.some(sel => document.querySelector(sel))) return true;
    if (window.__NEXT_DATA__ || window.__NUXT__ || window.React || window.angular || window.Vue) return true;
    const scripts = [...document.querySelectorAll('script[src]')].map(s => s.src.toLowerCase());
    return scripts.some(src => /react|vue|angular|svelte|_next\/static|chunk\.|bundle\./.test(src));
}'''


async def body_text(page) -> str:
    try:
        return await page.evaluate("() => document.body ? document.body.innerText || '' : ''")
    except Exception as e:
        logger.debug("[page] innerText failed: %s", e)
        return ""


def price_count(text: str) -> int:
    return len(re.findall(PRICE_PATTERN, text or ""))


async def detect_spa(page) -> bool:
    """True when the page looks client-rendered (React/Vue/Angular/etc.)."""
    try:
        return bool(await page.evaluate(SPA_MARKERS_JS))
    except Exception as e:
        logger.debug("[page] SPA detection failed: %s", e)
        return False


async def clear_marks(page) -> None:
    try:
        await page.evaluate(
            "(attr) => document.querySelectorAll('[' + attr + ']').forEach(el => el.removeAttribute(attr))",
            MARK_ATTR,
        )
    except Exception:
        pass


async def click_marked(page, timeout: int = 5000) -> bool:
    """Click the element tagged with MARK_ATTR. Falls back to a DOM click."""
    try:
        await page.locator(MARK_SELECTOR).first.click(timeout=timeout)
        return True
    except Exception as e:
        logger.debug("[page] locator click failed (%s), trying DOM click", e)
    try:
        return bool(await page.evaluate(
            "(sel) => { const el = document.querySelector(sel); if (!el) return false; el.click(); return true; }",
            MARK_SELECTOR,
        ))
    except Exception as e:
        logger.debug("[page] DOM click failed: %s", e)
        return False


async def wait_for_body_text(page, min_length: int, timeout: int = 5000) -> bool:
    try:
        await page.wait_for_function(
            "(n) => document.body && document.body.innerText.length > n",
            arg=min_length,
            timeout=timeout,
        )
        return True
    except Exception:
        return False


async def wait_for_menu_ready(page, min_prices: int = 5, min_length: int = 2000, timeout: int = 10000) -> bool:
    """Wait until the page shows prices or enough text to be worth reading."""
    try:
        await page.wait_for_function(
            r'''([minPrices, minLength, pattern]) => {
                const text = document.body ? document.body.innerText : '';
                const prices = (text.match(new RegExp(pattern, 'g')) || []).length;
                return prices >= minPrices || text.length > minLength;
            }''',
            arg=[min_prices, min_length, PRICE_PATTERN],
            timeout=timeout,
        )
        return True
    except Exception:
        return False
