"""
Navigation resolver: get from a restaurant's landing page to its menu.

Decision order:
  1. stay if the current page already classifies as an excellent menu
  2. stay if it's good and there is no "menu" navigation to follow
  3. stay if URL/content signals say this is already the menu page
  4. otherwise: dropdown menu link, else best "menu"/"order" control
  5. after navigating, handle third-party ordering platforms
  6. if the control only scrolled in-page, look for a secondary control
"""

import logging
from urllib.parse import urlparse

from app.classifier import classify_content
from app.page_utils import (
    MARK_ATTR,
    PRICE_PATTERN,
    body_text,
    clear_marks,
    click_marked,
    detect_spa,
    wait_for_body_text,
    wait_for_menu_ready,
)


logger = logging.getLogger(__name__)

NAVIGATION_TIMEOUT = 15000  # ms
PLATFORM_READY_TIMEOUT = 15000  # ms

# Host substrings of hosted food-ordering platforms
ORDERING_PLATFORM_HOSTS = [
    "toasttab.com", "order.online", "doordash.com", "ubereats.com", "grubhub.com",
    "chownow.com", "clover.com", "square.site", "squareup.com", "olo.com",
    "popmenu.com", "bentobox", "getbento.com", "spoton.com", "menufy.com",
    "slicelife.com", "beyondmenu.com", "owner.com", "hungerrush.com",
    "foodbooking.com", "gloriafood.com", "menusifu.com", "orderonlinemenu",
    "ordering.app", "tryotter.com", "lunchbox.io", "craverapp.com", "thanx.com",
    "heartlandordering", "revelup.com", "menupages.com",
]


def is_ordering_platform(url: str) -> bool:
    """True for URLs on a known hosted ordering platform."""
    if not url:
        return False
    try:
        host = urlparse(url).netloc.lower()
    except ValueError:
        return False
    return any(pattern in host for pattern in ORDERING_PLATFORM_HOSTS)


# ---------------------------------------------------------------------------
# Page inspection scripts
# ---------------------------------------------------------------------------

HAS_MENU_NAV_JS = r'''() => {
    const phrases = ['menu', 'our menu', 'view menu', 'see menu', 'food menu', 'full menu', 'menus'];
    for (const el of document.querySelectorAll('a, button, [role="button"], [role="menuitem"]')) {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        const text = (el.textContent || '').trim().toLowerCase();
        const href = (el.getAttribute('href') || '').toLowerCase();
        if (text.length > 40) continue;
        if (phrases.includes(text) || /\bmenus?\b/.test(text) || /\/menu/.test(href)) return true;
    }
    return false;
}'''

MENU_PAGE_SIGNALS_JS = r'''(pattern) => {
    const url = window.location.href.toLowerCase();
    const path = window.location.pathname.toLowerCase();
    const text = (document.body ? document.body.innerText : '').toLowerCase();
    const prices = (text.match(new RegExp(pattern, 'g')) || []).length;
    const keywords = ['appetizer', 'starter', 'entree', 'dessert', 'salad', 'soup', 'pasta',
        'pizza', 'burger', 'sandwich', 'beverage', 'drinks', 'sides', 'specials'];
    const keywordHits = keywords.filter(k => text.includes(k)).length;
    const words = Math.max(text.split(/\s+/).length, 1);
    const grid = !!document.querySelector(
        '[class*="menu-item"], [class*="menuItem"], [class*="menu-grid"], [class*="menu-section"], ' +
        '[class*="menu_item"], [data-testid*="menu-item"], [itemtype*="MenuItem"]'
    );
    return {
        url,
        strongUrl: /\/menus?\//.test(path) || /\/menus?$/.test(path),
        menuInUrl: url.includes('menu'),
        prices,
        keywordDensity: keywordHits * 1000 / words,
        keywordHits,
        grid,
    };
}'''

FIND_MENU_CONTROL_JS = r'''(attr) => {
    const skip = ['cart', 'checkout', 'account', 'login', 'log in', 'sign in', 'sign up',
        'register', 'gift', 'career', 'job', 'careers'];
    const exact = ['menu', 'menus', 'our menu', 'view menu', 'see menu', 'food menu',
        'full menu', 'view our menu', 'see our menu', 'dinner menu', 'lunch menu'];
    const orderExact = ['order', 'order now', 'order online', 'start order', 'start an order',
        'order pickup', 'order takeout'];
    let best = null;
    let bestEl = null;
    for (const el of document.querySelectorAll('a, button, [role="button"], [role="menuitem"]')) {
        const text = (el.textContent || '').trim().replace(/\s+/g, ' ');
        const lower = text.toLowerCase();
        const rect = el.getBoundingClientRect();
        if (!text || text.length > 60 || rect.width === 0 || rect.height === 0) continue;
        if (skip.some(s => lower.includes(s))) continue;
        const rawHref = el.getAttribute('href') || '';
        let score = 0;
        if (exact.includes(lower)) score = 100;
        else if (/\bmenus?\b/.test(lower)) score = 80;
        else if (orderExact.includes(lower)) score = 70;
        else if (/\border\b/.test(lower)) score = 55;
        else if (lower.includes('pickup') || lower.includes('takeout')) score = 40;
        if (!score) continue;
        if (/\/menu/i.test(rawHref)) score += 15;
        if (!best || score > best.score) {
            const href = el.href || '';
            const isAnchor = !rawHref || rawHref.startsWith('#') ||
                rawHref.toLowerCase().startsWith('javascript:') ||
                (href && href.split('#')[0] === window.location.href.split('#')[0] && rawHref.includes('#'));
            best = {text, score, href, target: el.getAttribute('target') || '', isAnchor};
            bestEl = el;
        }
    }
    if (bestEl) bestEl.setAttribute(attr, '1');
    return best;
}'''

FIND_SECONDARY_CONTROL_JS = r'''([attr, platformHosts]) => {
    const here = window.location.href.split('#')[0];
    const social = ['facebook.', 'instagram.', 'twitter.', 'x.com', 'tiktok.', 'yelp.',
        'tripadvisor.', 'youtube.', 'linkedin.', 'pinterest.', 'google.com/maps', 'maps.apple'];
    const utility = ['career', 'job', 'gift', 'contact', 'about', 'privacy', 'terms',
        'press', 'blog', 'login', 'sign in', 'account', 'cart'];
    let best = null;
    let bestEl = null;
    for (const el of document.querySelectorAll('a[href], button, [role="button"]')) {
        if (el.closest('footer, [class*="footer"], [id*="footer"]')) continue;
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        const text = (el.textContent || '').trim().replace(/\s+/g, ' ');
        const lower = text.toLowerCase();
        if (!text || text.length > 60) continue;
        const rawHref = el.getAttribute('href') || '';
        const href = el.href || '';
        if (!href || rawHref.startsWith('#') || href.split('#')[0] === here) continue;
        if (href.toLowerCase().startsWith('javascript:') || href.startsWith('mailto:') || href.startsWith('tel:')) continue;
        const hrefLower = href.toLowerCase();
        if (social.some(s => hrefLower.includes(s))) continue;
        if (utility.some(u => lower.includes(u))) continue;
        const mentionsMenu = /menu|order/.test(lower) || /menu|order/.test(hrefLower);
        let host = '';
        try { host = new URL(href).host.toLowerCase(); } catch (e) {}
        const onPlatform = platformHosts.some(p => host.includes(p));
        if (!mentionsMenu && !onPlatform) continue;
        let score = 0;
        if (/\bmenus?\b/.test(lower)) score += 100;
        if (/\border\b/.test(lower)) score += 70;
        if (/\/menu/.test(hrefLower)) score += 30;
        if (onPlatform) score += 40;
        if (!best || score > best.score) {
            best = {text, score, href, target: el.getAttribute('target') || '', isAnchor: false};
            bestEl = el;
        }
    }
    if (bestEl) bestEl.setAttribute(attr, '1');
    return best;
}'''

DROPDOWN_JS = r'''async (attr) => {
    const dropdowns = [...document.querySelectorAll(
        '[class*="dropdown"], [aria-haspopup="true"], [aria-haspopup="menu"], .w-dropdown, ' +
        'li.menu-item-has-children, [class*="has-submenu"], [class*="has-children"]'
    )];
    for (const dropdown of dropdowns) {
        const label = (dropdown.textContent || '').toLowerCase();
        if (!label.includes('menu')) continue;
        const toggle = dropdown.querySelector(
            '[class*="toggle"], .w-dropdown-toggle, button, [aria-haspopup], a'
        ) || dropdown;
        toggle.dispatchEvent(new MouseEvent('mouseover', {bubbles: true}));
        if (toggle.tagName !== 'A' || !(toggle.getAttribute('href') || '').replace('#', '')) {
            toggle.click();
        }
        await new Promise(r => setTimeout(r, 400));

        let list = null;
        const controls = toggle.getAttribute('aria-controls');
        if (controls) list = document.getElementById(controls);
        if (!list) list = dropdown.querySelector(
            '[class*="dropdown-list"], [class*="dropdown-menu"], .w-dropdown-list, ul.sub-menu, ul'
        );
        if (!list) continue;
        for (const link of list.querySelectorAll('a[href]')) {
            const raw = link.getAttribute('href') || '';
            const text = (link.textContent || '').trim().toLowerCase();
            if (/\/menu/i.test(raw) || text === 'menu' || text === 'regular' || text === 'food menu') {
                link.setAttribute(attr, '1');
                return {text, href: link.href, target: link.getAttribute('target') || '',
                        isAnchor: raw.startsWith('#')};
            }
        }
    }
    return null;
}'''

ORDERING_PLATFORM_JS = r'''(attr) => {
    const vocab = [
        ['order now', 100], ['start order', 100], ['start your order', 100], ['order online', 95],
        ['schedule order', 90], ['view menu', 90], ['see menu', 85], ['order pickup', 85],
        ['pickup', 60], ['takeout', 60], ['continue', 70], ['select location', 65],
        ['select', 45], ['choose', 45], ['menu', 60], ['order', 55],
    ];
    const cardRe = /location|store|restaurant|card|venue|address|branch/;
    const addressRe = /\d{1,5}\s+\w+(\s\w+)*\s+(street|st|avenue|ave|road|rd|blvd|boulevard|drive|dr|lane|ln|way)\b/i;
    let best = null;
    let bestEl = null;
    for (const el of document.querySelectorAll('button, a, [role="button"], [role="link"]')) {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        if (el.disabled || el.getAttribute('aria-disabled') === 'true') continue;
        const text = (el.textContent || '').trim().toLowerCase().replace(/\s+/g, ' ');
        if (!text || text.length > 50) continue;
        let score = 0;
        for (const [kw, weight] of vocab) {
            if (text === kw) { score = Math.max(score, weight + 10); }
            else if (text.includes(kw)) { score = Math.max(score, weight); }
        }
        if (!score) continue;
        let node = el.parentElement;
        for (let depth = 0; node && depth < 5; depth++, node = node.parentElement) {
            const cls = ((typeof node.className === 'string' ? node.className : '') + ' ' + (node.id || '')).toLowerCase();
            if (cardRe.test(cls) || node.tagName === 'LI' || node.tagName === 'ARTICLE') {
                score += 30;
                const cardText = (node.innerText || '').toLowerCase();
                if (addressRe.test(cardText) || /\bopen\b/.test(cardText)) score += 20;
                break;
            }
        }
        if (!best || score > best.score) {
            best = {text, score};
            bestEl = el;
        }
    }
    if (bestEl) bestEl.setAttribute(attr, '1');
    return best;
}'''

LOCATION_MENUS_JS = r'''([attr, pattern]) => {
    const url = window.location.href.toLowerCase();
    if (!url.includes('/menu')) return null;
    const text = (document.body ? document.body.innerText : '').toLowerCase();
    const prices = (text.match(new RegExp(pattern, 'g')) || []).length;
    if (prices >= 15) return null;

    const candidates = [];
    for (const el of document.querySelectorAll('button, a, [role="button"]')) {
        const label = (el.textContent || '').trim().replace(/\s+/g, ' ');
        const lower = label.toLowerCase();
        const href = el.getAttribute('href') || '';
        const rect = el.getBoundingClientRect();
        if (rect.width < 80 || rect.height < 30 || label.length > 50) continue;
        let score = 0;
        if (lower.includes('menu') && label.length < 40) score += 100;
        if (/\d{1,5}\s+\w+\s+(street|st|avenue|ave|road|rd|blvd|drive|dr)\b/i.test(label)) score += 90;
        if (/store\s*#?\d+/i.test(lower)) score += 85;
        if (href.includes('/menu/')) score += 70;
        if (score > 0) candidates.push({el, label, score});
    }
    candidates.sort((a, b) => b.score - a.score);
    const strong = candidates.filter(c => c.score >= 60);
    if (strong.length < 2 || candidates[0].score < 60) return null;
    candidates[0].el.setAttribute(attr, '1');
    return {text: candidates[0].label, score: candidates[0].score};
}'''


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _has_menu_navigation(page) -> bool:
    try:
        return bool(await page.evaluate(HAS_MENU_NAV_JS))
    except Exception:
        return False


async def is_on_menu_page(page) -> bool:
    """URL and content signals for 'this already is the menu page'."""
    try:
        signals = await page.evaluate(MENU_PAGE_SIGNALS_JS, PRICE_PATTERN)
    except Exception as e:
        logger.debug("[navigation] menu page signals failed: %s", e)
        return False

    if signals["strongUrl"]:
        logger.info("[navigation] URL looks like a menu page, staying")
        return True
    if signals["menuInUrl"] and signals["prices"] >= 10:
        return True
    if signals["prices"] >= 15 and signals["keywordHits"] >= 3:
        return True
    if signals["grid"] and (signals["prices"] >= 5 or signals["keywordDensity"] > 5):
        return True
    return False


async def _activate_control(page, control: dict, timeout: int = NAVIGATION_TIMEOUT) -> bool:
    """
    Activate the marked control. Returns True when it caused a real navigation,
    False when it only scrolled/toggled in place.
    """
    href = control.get("href") or ""
    if href and not control.get("isAnchor") and not href.lower().startswith("javascript:"):
        if control.get("target") == "_blank":
            logger.info("[navigation] %r opens a new tab, going to %s directly", control.get("text"), href)
            try:
                await page.goto(href, wait_until="domcontentloaded", timeout=timeout)
            except Exception as e:
                logger.debug("[navigation] direct goto failed: %s", e)
                await wait_for_body_text(page, 500)
            return True

        before = page.url
        try:
            async with page.expect_navigation(wait_until="domcontentloaded", timeout=timeout):
                await click_marked(page)
        except Exception as e:
            logger.debug("[navigation] no navigation event after click (%s)", e)
            await wait_for_body_text(page, 500)
        return page.url != before

    await click_marked(page)
    await page.wait_for_timeout(800)
    return False


async def _after_navigation(page) -> None:
    """Handle ordering platforms / SPAs after landing on a new page."""
    on_platform = is_ordering_platform(page.url)
    if on_platform or await detect_spa(page):
        logger.info("[navigation] %s detected at %s", "ordering platform" if on_platform else "SPA", page.url)
        await wait_for_menu_ready(page, min_prices=3, min_length=1000, timeout=8000)
        if await handle_ordering_platform(page):
            await page.wait_for_timeout(1500)
        await wait_for_menu_ready(page, min_prices=5, min_length=2000, timeout=PLATFORM_READY_TIMEOUT)


async def handle_dropdown_menu(page) -> bool:
    """Open a 'Menu' dropdown and follow its /menu link. Returns True if activated."""
    try:
        await clear_marks(page)
        link = await page.evaluate(DROPDOWN_JS, MARK_ATTR)
        if not link:
            return False
        logger.info("[navigation] dropdown menu link %r -> %s", link.get("text"), link.get("href"))
        await _activate_control(page, link)
        return True
    except Exception as e:
        logger.debug("[navigation] dropdown handling failed: %s", e)
        return False


async def handle_ordering_platform(page) -> bool:
    """Click the best 'order now' / location control on an ordering platform."""
    try:
        await clear_marks(page)
        best = await page.evaluate(ORDERING_PLATFORM_JS, MARK_ATTR)
        if not best:
            return False
        logger.info("[navigation] ordering platform control %r (score %s)", best["text"], best["score"])
        return await click_marked(page)
    except Exception as e:
        logger.debug("[navigation] ordering platform handling failed: %s", e)
        return False


async def handle_location_menus(page) -> None:
    """Pick a per-location menu when a /menu page only lists locations."""
    try:
        await clear_marks(page)
        choice = await page.evaluate(LOCATION_MENUS_JS, [MARK_ATTR, PRICE_PATTERN])
        if not choice:
            return
        logger.info("[navigation] choosing location menu %r", choice["text"])
        await click_marked(page)
        await page.wait_for_timeout(800)
        await wait_for_menu_ready(page, min_prices=5, min_length=1500, timeout=8000)
    except Exception as e:
        logger.debug("[navigation] location menu handling failed: %s", e)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def navigate_to_menu(page) -> None:
    """Best-effort: leave the page on the most likely menu view. Never raises."""
    try:
        classification = await classify_content(await body_text(page))
        if classification.score > 80 and classification.confidence > 0.8:
            logger.info("[navigation] current page is already an excellent menu (%s)", classification.score)
            return

        has_menu_nav = await _has_menu_navigation(page)
        if classification.score > 60 and classification.confidence > 0.7 and not has_menu_nav:
            logger.info("[navigation] good content and no menu link, staying")
            return

        if await is_on_menu_page(page):
            return

        if await handle_dropdown_menu(page):
            await _after_navigation(page)
            return

        await clear_marks(page)
        control = await page.evaluate(FIND_MENU_CONTROL_JS, MARK_ATTR)
        if not control:
            logger.info("[navigation] no menu control found")
            return

        logger.info("[navigation] activating %r (score %s)", control["text"], control["score"])
        navigated = await _activate_control(page, control)
        if navigated:
            await _after_navigation(page)
            return

        # In-page anchor: let it settle, then look for a control that really navigates
        await page.wait_for_timeout(600)
        await clear_marks(page)
        secondary = await page.evaluate(FIND_SECONDARY_CONTROL_JS, [MARK_ATTR, ORDERING_PLATFORM_HOSTS])
        if secondary:
            logger.info("[navigation] secondary control %r -> %s", secondary["text"], secondary["href"])
            if await _activate_control(page, secondary):
                await _after_navigation(page)
    except Exception as e:
        logger.warning("[navigation] navigate_to_menu failed: %s", e)
