"""
Content expander: get every menu category's text out of the page.

Order of operations:
  1. direct extraction of tab widgets straight from the DOM (no clicks)
  2. scroll for lazy content, open accordions / <details>
  3. discover category controls and click through them, keeping only
     blocks whose fingerprint hasn't been seen
  4. follow a few category links that point at other pages
"""

import hashlib
import logging
import re
from urllib.parse import urldefrag

from app.classifier import classify_content
from app.page_utils import (
    MARK_ATTR,
    body_text,
    clear_marks,
    click_marked,
    price_count,
)
from app.popups import dismiss_popups


logger = logging.getLogger(__name__)

MAX_CATEGORIES = 25
MAX_NAV_LINK_CATEGORIES = 3
MIN_TABS_BEFORE_EARLY_EXIT = 5
MIN_ACTIVE_CONTENT = 40
MIN_DISCOVERED_CANDIDATES = 2

FOOD_WORDS = [
    "appetizer", "starter", "entree", "entrée", "main", "dessert", "drink", "beverage",
    "salad", "soup", "pasta", "pizza", "burger", "sandwich", "brunch", "breakfast",
    "lunch", "dinner", "noodle", "rice", "curry", "seafood", "wine", "beer",
    "cocktail", "sushi", "roll", "taco", "side", "special", "kids", "coffee", "tea",
]


# ---------------------------------------------------------------------------
# Fingerprints + accumulation
# ---------------------------------------------------------------------------

def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "")).strip().lower()


def text_fingerprint(text: str, slice_len: int = 200) -> str:
    """Hash of prefix + middle + suffix slices of the normalized text."""
    norm = normalize_text(text)
    if len(norm) <= slice_len * 3:
        key = norm
    else:
        mid = len(norm) // 2
        key = "|".join([
            norm[:slice_len],
            norm[mid - slice_len // 2: mid + slice_len // 2],
            norm[-slice_len:],
        ])
    return hashlib.md5(key.encode("utf-8", errors="ignore")).hexdigest()


def has_menu_signals(text: str) -> bool:
    """Enough prices or food vocabulary to be worth keeping as menu text."""
    if not text:
        return False
    density = price_count(text) / max(len(text) / 1000, 0.001)
    if price_count(text) >= 2 and density >= 1:
        return True
    lower = text.lower()
    return sum(1 for word in FOOD_WORDS if word in lower) >= 3


class CategoryAccumulator:
    """
    Collects '=== CATEGORY ===' blocks. A block is dropped when its fingerprint
    was already seen or its text is already contained in an accepted block.
    A block that contains accepted blocks (a click that revealed the whole
    page) keeps only its new lines, and is dropped when those are too short.
    """

    def __init__(self, min_new_text: int = MIN_ACTIVE_CONTENT):
        self.blocks: list[tuple[str, str]] = []
        self.min_new_text = min_new_text
        self._fingerprints: set[str] = set()
        self._normalized: list[str] = []

    def seen(self, text: str) -> bool:
        if text_fingerprint(text) in self._fingerprints:
            return True
        norm = normalize_text(text)
        return any(norm in existing for existing in self._normalized)

    def uncovered_lines(self, text: str) -> str:
        """The lines of `text` that no accepted block already has."""
        known = {normalize_text(line) for _, block in self.blocks for line in block.splitlines()}
        return "\n".join(
            line for line in (text or "").splitlines()
            if normalize_text(line) and normalize_text(line) not in known
        ).strip()

    def add(self, name: str, text: str) -> bool:
        text = (text or "").strip()
        if not text or self.seen(text):
            return False
        self._fingerprints.add(text_fingerprint(text))

        norm = normalize_text(text)
        if any(existing in norm for existing in self._normalized):
            text = self.uncovered_lines(text)
            if len(text) < self.min_new_text:
                return False

        self._normalized.append(normalize_text(text))
        self.blocks.append((name, text))
        return True

    def __len__(self) -> int:
        return len(self.blocks)

    def render(self) -> str:
        return "\n\n".join(
            f"=== {name.upper()} ===\n\n{text}" for name, text in self.blocks
        )

    def covered_length(self) -> int:
        return sum(len(text) for _, text in self.blocks)


# ---------------------------------------------------------------------------
# Direct extraction (fast path)
# ---------------------------------------------------------------------------

DIRECT_TABS_JS = r'''() => {
    const inChrome = (el) => !!el.closest('nav, header, footer, [role="navigation"]');
    const clean = (s) => (s || '').replace(/\s+/g, ' ').trim();

    // Read innerText of a possibly hidden panel by showing it for a moment
    const panelText = (panel) => {
        const style = panel.getAttribute('style');
        const hidden = panel.hidden;
        panel.hidden = false;
        if (getComputedStyle(panel).display === 'none') panel.style.display = 'block';
        const text = (panel.innerText || panel.textContent || '').trim();
        panel.hidden = hidden;
        if (style === null) panel.removeAttribute('style'); else panel.setAttribute('style', style);
        return text;
    };

    const byHash = (value) => {
        if (!value || !value.startsWith('#') || value.length < 2) return null;
        try { return document.querySelector(value); } catch (e) { return null; }
    };

    const strategies = [];

    // Elementor
    strategies.push(() => {
        const tabs = [...document.querySelectorAll('.elementor-tab-desktop-title, .elementor-tabs-wrapper .elementor-tab-title')];
        const panels = [...document.querySelectorAll('.elementor-tabs-content-wrapper .elementor-tab-content')];
        return {tabs, panels};
    });
    // Divi
    strategies.push(() => ({
        tabs: [...document.querySelectorAll('.et_pb_tabs_controls li')],
        panels: [...document.querySelectorAll('.et_pb_all_tabs .et_pb_tab')],
    }));
    // Webflow
    strategies.push(() => ({
        tabs: [...document.querySelectorAll('.w-tab-menu .w-tab-link')],
        panels: [...document.querySelectorAll('.w-tab-content .w-tab-pane')],
    }));
    // jQuery UI
    strategies.push(() => {
        const tabs = [...document.querySelectorAll('.ui-tabs-nav li a[href^="#"]')];
        return {tabs, panels: tabs.map(t => byHash(t.getAttribute('href')))};
    });
    // Generic ARIA tabs
    strategies.push(() => {
        const tabs = [...document.querySelectorAll('[role="tab"]')];
        let panels = tabs.map(t => {
            const id = t.getAttribute('aria-controls');
            return id ? document.getElementById(id) : null;
        });
        if (panels.some(p => !p)) {
            const all = [...document.querySelectorAll('[role="tabpanel"]')];
            panels = all.length === tabs.length ? all : panels;
        }
        return {tabs, panels};
    });
    // Bootstrap
    strategies.push(() => {
        const tabs = [...document.querySelectorAll(
            '[data-toggle="tab"], [data-bs-toggle="tab"], [data-toggle="pill"], [data-bs-toggle="pill"]'
        )];
        const panels = tabs.map(t => byHash(
            t.getAttribute('data-bs-target') || t.getAttribute('data-target') || t.getAttribute('href')
        ));
        return {tabs, panels};
    });

    for (const strategy of strategies) {
        let found;
        try { found = strategy(); } catch (e) { continue; }
        const tabs = found.tabs.filter(t => !inChrome(t));
        if (tabs.length < 2) continue;
        const panels = found.tabs.filter(t => !inChrome(t)).map(t => found.panels[found.tabs.indexOf(t)]);
        if (panels.length !== tabs.length || panels.some(p => !p)) continue;

        const pairs = [];
        for (let i = 0; i < tabs.length; i++) {
            const name = clean(tabs[i].innerText || tabs[i].textContent);
            const text = panelText(panels[i]);
            if (!name || name.length > 60 || text.length < 10) continue;
            pairs.push({name, text});
        }
        const total = pairs.reduce((n, p) => n + p.text.length, 0);
        if (pairs.length >= 2 && pairs.length === tabs.length && total >= 50) return pairs;
    }
    return null;
}'''


async def extract_tabbed_content_directly(page) -> str | None:
    """Read tab/panel pairs straight from the DOM. Returns None if not applicable."""
    try:
        pairs = await page.evaluate(DIRECT_TABS_JS)
    except Exception as e:
        logger.debug("[expander] direct tab extraction failed: %s", e)
        return None
    if not pairs:
        return None

    text = "\n\n".join(f"=== {p['name'].upper()} ===\n\n{p['text']}" for p in pairs)
    if not has_menu_signals(text):
        logger.info("[expander] %d tab panels found but no menu signals, ignoring", len(pairs))
        return None
    logger.info("[expander] direct extraction: %d tab panels, %d chars", len(pairs), len(text))
    return text


# ---------------------------------------------------------------------------
# Lazy loading + accordions
# ---------------------------------------------------------------------------

SCROLL_CONTAINERS_JS = r'''async () => {
    const scrollables = [];
    for (const el of document.querySelectorAll('main *, [role="main"] *, body > div *')) {
        const s = getComputedStyle(el);
        if ((s.overflowY === 'auto' || s.overflowY === 'scroll') && el.scrollHeight > el.clientHeight + 20) {
            scrollables.push(el);
        }
        if (scrollables.length >= 10) break;
    }
    for (const container of scrollables) {
        let stable = 0;
        let last = container.scrollHeight;
        for (let i = 0; i < 8 && stable < 2; i++) {
            container.scrollTop = container.scrollHeight - container.clientHeight;
            await new Promise(r => setTimeout(r, 100));
            stable = container.scrollHeight === last ? stable + 1 : 0;
            last = container.scrollHeight;
        }
    }
    return scrollables.length;
}'''


async def scroll_for_lazy_content(page, is_spa: bool = False) -> None:
    """Scroll a viewport at a time until the page height stops growing."""
    max_attempts = 20 if is_spa else 10
    delay = 800 if is_spa else 250
    stable_needed = 3 if is_spa else 2

    try:
        stable = 0
        last_height = await page.evaluate("() => document.body.scrollHeight")
        for _ in range(max_attempts):
            await page.evaluate("() => window.scrollBy(0, window.innerHeight)")
            await page.wait_for_timeout(delay)
            state = await page.evaluate(
                "() => ({h: document.body.scrollHeight, y: window.scrollY, vh: window.innerHeight})"
            )
            near_bottom = state["y"] + state["vh"] >= state["h"] - 50
            if state["h"] == last_height and near_bottom:
                stable += 1
                if stable >= stable_needed:
                    break
            else:
                stable = 0
            last_height = state["h"]

        await page.evaluate(SCROLL_CONTAINERS_JS)
        await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        await page.wait_for_timeout(300)
    except Exception as e:
        logger.debug("[expander] scroll failed: %s", e)


EXPAND_SECTIONS_JS = r'''async (limit) => {
    const food = ['appetizer', 'starter', 'entree', 'main', 'dessert', 'drink', 'beverage', 'salad',
        'soup', 'pasta', 'pizza', 'burger', 'sandwich', 'brunch', 'breakfast', 'lunch', 'dinner',
        'wine', 'beer', 'cocktail', 'sushi', 'side', 'special', 'kids', 'menu', 'taco', 'bowl'];
    const navish = /(^|[\s_-])(nav|navbar|menu-toggle|hamburger|burger-menu|mobile-menu|site-menu|header|footer|search|cart|account|lang)([\s_-]|$)/;
    let count = 0;
    for (const el of document.querySelectorAll('[aria-expanded="false"]')) {
        if (count >= limit) break;
        if (el.closest('nav, header, footer, [role="navigation"]')) continue;
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        const tokens = ((typeof el.className === 'string' ? el.className : '') + ' ' + (el.id || '')).toLowerCase();
        if (navish.test(tokens)) continue;
        const text = (el.textContent || '').toLowerCase();
        const inMain = !!el.closest('main, [role="main"], article, section, [class*="content"], [class*="menu"]');
        const foodish = food.some(w => text.includes(w));
        if (!inMain && !foodish) continue;
        if (!foodish && text.length > 80) continue;
        el.click();
        count++;
        await new Promise(r => setTimeout(r, 60));
    }
    let details = 0;
    for (const d of document.querySelectorAll('details:not([open])')) {
        d.open = true;
        details++;
    }
    return {clicked: count, details};
}'''


async def expand_sections(page, limit: int = 30) -> None:
    """Open menu-related accordions and every <details> element."""
    try:
        result = await page.evaluate(EXPAND_SECTIONS_JS, limit)
        if result["clicked"] or result["details"]:
            logger.info(
                "[expander] expanded %d accordions, %d details",
                result["clicked"], result["details"],
            )
            await page.wait_for_timeout(300)
    except Exception as e:
        logger.debug("[expander] expand sections failed: %s", e)


# ---------------------------------------------------------------------------
# Category discovery
# ---------------------------------------------------------------------------

# Shared between discovery and clicking so both apply the same exclusions
CANDIDATE_FILTERS_JS = r'''
const EXCLUDE_WORDS = ['order now', 'order online', 'start order', 'contact', 'location', 'directions',
    'hours', 'about', 'reservation', 'reserve', 'book a table', 'gift', 'career', 'jobs', 'login',
    'log in', 'sign in', 'sign up', 'account', 'cart', 'checkout', 'facebook', 'instagram',
    'twitter', 'tiktok', 'yelp', 'privacy', 'terms', 'home', 'newsletter', 'subscribe', 'call us',
    'email', 'press', 'blog', 'careers', 'follow us', 'back to top', 'skip to'];
const BLACKLIST = [/^\d+$/, /^[$€£]\s?\d+/, /^[\d\s\-\(\)\+\.]+$/, /^\d{1,2}:\d{2}/];
const normalize = (s) => (s || '').replace(/\s+/g, ' ').trim().toLowerCase();
const inChrome = (el) => !!el.closest('nav, header, footer, [role="navigation"], [class*="footer"], [id*="footer"]');
const visible = (el, minW, minH) => {
    const rect = el.getBoundingClientRect();
    if (rect.width < minW || rect.height < minH) return false;
    const s = getComputedStyle(el);
    return s.display !== 'none' && s.visibility !== 'hidden';
};
const excluded = (el, text) => {
    const lower = text.toLowerCase();
    if (!text || text.length < 3 || text.length > 50) return true;
    if (BLACKLIST.some(p => p.test(text))) return true;
    if (EXCLUDE_WORDS.some(w => lower.includes(w))) return true;
    if (inChrome(el)) return true;
    const href = el.getAttribute('href') || '';
    if (href && !href.startsWith('#') && el.href) {
        try {
            const target = new URL(el.href);
            if (target.origin !== window.location.origin && !/menu/i.test(el.href + ' ' + text)) return true;
        } catch (e) { return true; }
    }
    return false;
};
'''

DISCOVER_JS = r'''([foodWords, minCount, limit]) => {
''' + CANDIDATE_FILTERS_JS + r'''
    const pricePattern = /[$€£]\s?\d{1,4}(?:[.,]\d{2})?/g;
    const sectionOf = (el) => el.closest('section, article, [class*="categor"], [class*="menu-section"], [class*="section"], [class*="group"]');

    const score = (el, text) => {
        const lower = text.toLowerCase();
        const cls = ((typeof el.className === 'string' ? el.className : '') + ' ' + (el.id || '')).toLowerCase();
        let s = 0;
        if (foodWords.some(w => lower === w || lower === w + 's' || lower === w + 'es')) s += 150;
        else if (foodWords.some(w => lower.includes(w))) s += 100;
        if (el.getAttribute('role') === 'tab') s += 100;
        if (cls.includes('categor')) s += 80;
        if (/(^|[\s_-])tab/.test(cls)) s += 60;
        if ((el.getAttribute('href') || '').startsWith('#')) s += 50;
        return s;
    };

    const collect = (roots, selector, minW, minH, withHeadings) => {
        const out = [];
        const all = [];
        for (const root of roots) all.push(...root.querySelectorAll(selector));
        for (const el of all) {
            const text = (el.innerText || el.textContent || '').replace(/\s+/g, ' ').trim();
            if (!visible(el, minW, minH) || excluded(el, text)) continue;
            let s = score(el, text);
            if (withHeadings && /^H[2-4]$/.test(el.tagName)) {
                const section = sectionOf(el);
                const prices = section ? ((section.innerText || '').match(pricePattern) || []).length : 0;
                if (prices < 2 || section.innerText.length <= text.length + 40) continue;
                s += 60;
            }
            if (s < 50) continue;
            const href = el.getAttribute('href') || '';
            const realHref = !!(href && !href.startsWith('#') && !href.toLowerCase().startsWith('javascript:') && el.href);
            out.push({el, text, score: s, href: realHref ? el.href : '', isTab: !realHref});
        }
        return out;
    };

    const containers = [...document.querySelectorAll(
        '[class*="menu"]:not(nav):not(header), [id*="menu"], [class*="tab"]:not([class*="table"]), ' +
        '[class*="categor"], [role="tablist"], [class*="grid"], [class*="nav-pills"], [class*="filter"]'
    )].filter(c => !c.closest('nav, header, footer'));

    let found = collect(containers, '[role="tab"], button, a, [class*="tab"]:not([class*="table"]), [class*="categor"], li', 1, 1, false);

    if (found.length < minCount) {
        const main = document.querySelector('main, [role="main"], #main, #content, [class*="content"]') || document.body;
        found = found.concat(collect([main], 'button, a, [role="tab"], [role="button"], li, span, h2, h3, h4', 0.5, 0.5, true));
    }

    // Dedup by normalized text, prefer mixed case over ALL CAPS
    const byKey = new Map();
    const seenEls = new Set();
    for (const c of found) {
        if (seenEls.has(c.el)) continue;
        seenEls.add(c.el);
        const key = normalize(c.text);
        const existing = byKey.get(key);
        if (!existing) { byKey.set(key, c); continue; }
        const existingCaps = existing.text === existing.text.toUpperCase();
        const currentCaps = c.text === c.text.toUpperCase();
        if (existingCaps && !currentCaps) byKey.set(key, {...c, score: Math.max(c.score, existing.score)});
    }

    const ordered = [...byKey.values()];
    const domIndex = new Map();
    [...document.querySelectorAll('*')].forEach((el, i) => domIndex.set(el, i));
    ordered.sort((a, b) => b.score - a.score);
    return ordered.slice(0, limit)
        .sort((a, b) => domIndex.get(a.el) - domIndex.get(b.el))
        .map(c => ({text: c.text, href: c.href, isTab: c.isTab, score: c.score}));
}'''


async def discover_categories(page) -> list[dict]:
    """Find clickable category controls: [{text, href, isTab, score}] in page order."""
    try:
        return await page.evaluate(DISCOVER_JS, [FOOD_WORDS, MIN_DISCOVERED_CANDIDATES, MAX_CATEGORIES]) or []
    except Exception as e:
        logger.debug("[expander] category discovery failed: %s", e)
        return []


# ---------------------------------------------------------------------------
# Click-through
# ---------------------------------------------------------------------------

MARK_CATEGORY_JS = r'''([attr, wanted]) => {
''' + CANDIDATE_FILTERS_JS + r'''
    const selectors = [
        '[role="tab"]', 'button', 'a', '[class*="tab"]:not([class*="table"])',
        '[class*="categor"]', '[role="button"]', 'li', 'h2, h3, h4', 'span',
    ];
    for (const selector of selectors) {
        for (const el of document.querySelectorAll(selector)) {
            const text = (el.innerText || el.textContent || '').replace(/\s+/g, ' ').trim();
            if (normalize(text) !== wanted) continue;
            if (!visible(el, 0.5, 0.5) || excluded(el, text)) continue;
            el.setAttribute(attr, '1');
            return true;
        }
    }
    return false;
}'''

ACTIVE_CONTENT_JS = r'''([attr, minLength]) => {
    const isShown = (el) => {
        if (!el) return false;
        const rect = el.getBoundingClientRect();
        const s = getComputedStyle(el);
        return rect.width > 0 && rect.height > 0 && s.display !== 'none' && s.visibility !== 'hidden';
    };
    const textOf = (el) => (el && (el.innerText || '').trim()) || '';
    const firstShown = (selector) => {
        for (const el of document.querySelectorAll(selector)) {
            if (isShown(el) && textOf(el).length >= minLength) return el;
        }
        return null;
    };
    const control = document.querySelector('[' + attr + ']');

    // 1. Known tab widgets
    const known = firstShown(
        '.elementor-tab-content.elementor-active, .et_pb_tab.et_pb_active_content, ' +
        '.w-tab-pane.w--tab-active, .ui-tabs-panel[aria-hidden="false"], .tab-pane.active.show, .tab-pane.active'
    );
    if (known) return {strategy: 'known-widget', text: textOf(known)};

    // 2. Panel the control points at
    if (control) {
        const ref = control.getAttribute('aria-controls') ||
            (control.getAttribute('data-bs-target') || control.getAttribute('data-target') ||
             control.getAttribute('href') || '').replace(/^#/, '');
        if (ref && !ref.includes('/')) {
            const target = document.getElementById(ref);
            if (isShown(target) && textOf(target).length >= minLength) return {strategy: 'target', text: textOf(target)};
        }
    }

    // 3. Filtered item grids (some items hidden by the active filter)
    const items = [...document.querySelectorAll('[class*="menu-item"], [class*="menuItem"], [class*="menu_item"]')];
    if (items.length) {
        const shown = items.filter(isShown);
        if (shown.length >= 2 && shown.length < items.length) {
            return {strategy: 'filtered-items', text: shown.map(textOf).join('\n')};
        }
    }

    // 4. Active / show classes
    const active = firstShown(
        '[class*="tab-content"] > .active, [class*="tab-pane"].show, [class*="panel"].active, ' +
        '[class*="tab"][class*="active"]:not([role="tab"]):not(a):not(button):not(li)'
    );
    if (active) return {strategy: 'active-class', text: textOf(active)};

    // 5. Visible ARIA tabpanel
    const panel = firstShown('[role="tabpanel"]:not([hidden])');
    if (panel) return {strategy: 'tabpanel', text: textOf(panel)};

    // 6. Section the control itself heads
    if (control) {
        const label = textOf(control);
        const section = control.closest('section, article, [class*="categor"], [class*="menu-section"], [class*="section"], [class*="group"]');
        if (section && !section.matches('body, main') && textOf(section).length > label.length + minLength) {
            return {strategy: 'section', text: textOf(section)};
        }
    }

    // 7. Main content with site chrome hidden
    const main = document.querySelector('main, [role="main"]') || document.body;
    const chrome = [...main.querySelectorAll('nav, header, footer, [role="navigation"]')];
    const saved = chrome.map(el => el.style.display);
    chrome.forEach(el => { el.style.display = 'none'; });
    const text = textOf(main);
    chrome.forEach((el, i) => { el.style.display = saved[i]; });
    return {strategy: 'main', text};
}'''


async def _mark_category(page, name: str) -> bool:
    await clear_marks(page)
    try:
        return bool(await page.evaluate(MARK_CATEGORY_JS, [MARK_ATTR, normalize_text(name)]))
    except Exception as e:
        logger.debug("[expander] could not locate category %r: %s", name, e)
        return False


async def _active_content(page) -> dict:
    try:
        return await page.evaluate(ACTIVE_CONTENT_JS, [MARK_ATTR, MIN_ACTIVE_CONTENT])
    except Exception as e:
        logger.debug("[expander] active content extraction failed: %s", e)
        return {"strategy": "error", "text": ""}


async def _wait_for_active_content(page, timeout_ms: int = 1500, poll_ms: int = 150) -> dict:
    """Poll until the active content stops changing and is long enough."""
    last = None
    waited = 0
    result = {"strategy": "none", "text": ""}
    while waited < timeout_ms:
        result = await _active_content(page)
        length = len(result["text"])
        if last is not None and length == last and length >= MIN_ACTIVE_CONTENT:
            return result
        last = length
        await page.wait_for_timeout(poll_ms)
        waited += poll_ms
    return result


async def main_content_text(page) -> str:
    await clear_marks(page)
    return (await _active_content(page))["text"]


async def _click_in_page_tab(page, name: str) -> str | None:
    if not await _mark_category(page, name):
        return None
    before = page.url
    if not await click_marked(page, timeout=3000):
        return None

    await page.wait_for_timeout(250)
    if urldefrag(page.url)[0] != urldefrag(before)[0]:
        # The "tab" was really a link
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=8000)
        except Exception:
            pass
        text = await main_content_text(page)
        try:
            await page.go_back(wait_until="domcontentloaded", timeout=8000)
        except Exception as e:
            logger.debug("[expander] go_back failed: %s", e)
        return text

    result = await _wait_for_active_content(page)
    logger.debug("[expander] %r -> %s (%d chars)", name, result["strategy"], len(result["text"]))
    return result["text"]


async def _visit_category_link(page, name: str, href: str) -> str | None:
    try:
        await page.goto(href, wait_until="domcontentloaded", timeout=15000)
    except Exception as e:
        logger.debug("[expander] could not open category link %s: %s", href, e)
        return None
    await dismiss_popups(page)
    await scroll_for_lazy_content(page)
    return await main_content_text(page)


async def click_through_categories_and_extract(page) -> str:
    """Click every category control and collect the text each one reveals."""
    accumulator = CategoryAccumulator()
    try:
        page_text = await main_content_text(page)
        categories = await discover_categories(page)
        logger.info("[expander] found %d category candidates", len(categories))

        tabs = [c for c in categories if c["isTab"]]
        here = urldefrag(page.url)[0]
        links = [
            c for c in categories
            if not c["isTab"] and urldefrag(c["href"])[0] != here
        ][:MAX_NAV_LINK_CATEGORIES]

        for i, category in enumerate(tabs):
            text = await _click_in_page_tab(page, category["text"])
            if text and len(text.strip()) >= MIN_ACTIVE_CONTENT:
                if accumulator.add(category["text"], text):
                    logger.info("[expander] new content from %r (%d chars)", category["text"], len(text))
                else:
                    logger.debug("[expander] duplicate content from %r, skipping", category["text"])

            if i + 1 >= MIN_TABS_BEFORE_EARLY_EXIT:
                classification = await classify_content(accumulator.render())
                if classification.score > 85 and classification.confidence > 0.8:
                    logger.info("[expander] enough menu content after %d tabs, stopping", i + 1)
                    break

        for category in links:
            text = await _visit_category_link(page, category["text"], category["href"])
            if text and accumulator.add(category["text"], text):
                logger.info("[expander] new content from link %r (%d chars)", category["text"], len(text))

        if not accumulator:
            return page_text

        combined = accumulator.render()
        # Category blocks only cover a sliver of the page: keep the rest of the page too
        if accumulator.covered_length() < len(page_text) * 0.3:
            rest = accumulator.uncovered_lines(page_text)
            if rest:
                combined = rest + "\n\n" + combined
        return combined
    except Exception as e:
        logger.warning("[expander] category extraction failed: %s", e)
        if accumulator:
            return accumulator.render()
        return await body_text(page)


# ---------------------------------------------------------------------------
# Known limitations
# ---------------------------------------------------------------------------

UNSUPPORTED_FORMATS_JS = r'''() => {
    const found = [];
    for (const a of document.querySelectorAll('a[href]')) {
        const href = a.href.toLowerCase();
        const text = (a.textContent || '').toLowerCase();
        if (href.endsWith('.pdf') || href.includes('.pdf?')) {
            if (/menu/.test(href + ' ' + text)) found.push('pdf-link:' + a.href);
        }
    }
    for (const el of document.querySelectorAll('iframe[src], embed[src], object[data]')) {
        const src = (el.getAttribute('src') || el.getAttribute('data') || '').toLowerCase();
        if (src.includes('.pdf') || src.includes('issuu.com')) found.push('pdf-embed:' + src);
    }
    for (const img of document.querySelectorAll('img')) {
        const label = ((img.getAttribute('alt') || '') + ' ' + (img.getAttribute('src') || '')).toLowerCase();
        if (/menu/.test(label) && img.naturalWidth >= 600 && img.naturalHeight >= 600) {
            found.push('image:' + img.src);
        }
    }
    return found.slice(0, 10);
}'''


async def detect_unsupported_menu_formats(page) -> list[str]:
    """Log (never fail on) PDF-only or image-only menus."""
    try:
        found = await page.evaluate(UNSUPPORTED_FORMATS_JS)
    except Exception as e:
        logger.debug("[expander] format detection failed: %s", e)
        return []
    if found:
        logger.info("[expander] menu may be PDF/image only (not extracted): %s", ", ".join(found[:3]))
    return found


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def expand_menu_content(page, is_spa: bool = False) -> str:
    """Return the raw menu text for the current page (best-effort)."""
    direct = await extract_tabbed_content_directly(page)
    if direct:
        return direct

    await scroll_for_lazy_content(page, is_spa=is_spa)
    await expand_sections(page)
    await detect_unsupported_menu_formats(page)
    return await click_through_categories_and_extract(page)
