"""
Branding extractor: logo URL and brand color palette from the landing page.

Both run on the page the user actually gave us (before any menu navigation,
ordering platforms lose the restaurant's branding). Neither ever raises.

Colors: a vision pass over a full-page screenshot first, then a DOM/CSS
fallback that collects weighted color candidates in the page and ranks them
here in Python (rank_color_candidates).
"""

import logging
import math
import re

from app.config import get_settings
from app.image_utils import screenshot_to_b64
from app.llm import complete_json
from app.models import ColorPalette


logger = logging.getLogger(__name__)

HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

# Perceptually-similar colors closer than this (RGB Euclidean) are merged
COLOR_DEDUP_DISTANCE = 40
# CSS custom properties / theme-color meta are treated as near-certain brand colors
DECLARED_COLOR_BOOST = 1000


# ---------------------------------------------------------------------------
# Logo
# ---------------------------------------------------------------------------

LOGO_JS = r'''() => {
    const candidates = [];
    const EXCLUDE = /avatar|placeholder|banner|hero|cookie|consent|gdpr|widget|plugin|badge|payment|app-store|google-play|tripadvisor|yelp|sprite|loading|spinner/i;
    const BRANDISH = /logo|brand/i;

    const hintOf = (el) => [
        typeof el.className === 'string' ? el.className : (el.className && el.className.baseVal) || '',
        el.id || '', el.getAttribute('alt') || '', el.getAttribute('aria-label') || '',
        el.getAttribute('src') || '', el.getAttribute('title') || '',
    ].join(' ');

    const sizeOk = (rect) => rect.width >= 40 && rect.width <= 500 && rect.height >= 30 && rect.height <= 300;

    const bgUrl = (el) => {
        const bg = getComputedStyle(el).backgroundImage;
        const m = bg && bg.match(/url\(["']?([^"')]+)["']?\)/);
        return m ? m[1] : null;
    };

    const add = (url, score, el) => {
        if (!url || url.startsWith('data:image/gif')) return;
        if (el && EXCLUDE.test(hintOf(el))) return;
        if (EXCLUDE.test(url) && !BRANDISH.test(url)) return;
        try { url = new URL(url, document.baseURI).href; } catch (e) { return; }
        candidates.push({url, score});
    };

    const svgToDataUrl = (svg) => {
        try {
            const xml = new XMLSerializer().serializeToString(svg);
            return 'data:image/svg+xml;base64,' + btoa(unescape(encodeURIComponent(xml)));
        } catch (e) { return null; }
    };

    // 1. Elements explicitly marked as logo/brand (no size constraint)
    for (const el of document.querySelectorAll('[class*="logo" i], [id*="logo" i], [aria-label*="logo" i], [class*="brand" i], [id*="brand" i]')) {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        const nearTop = rect.top + window.scrollY < 200;
        const img = el.tagName === 'IMG' ? el : el.querySelector('img');
        if (img) add(img.currentSrc || img.src, 100 + (nearTop ? 30 : 0), img);
        else if (bgUrl(el)) add(bgUrl(el), 90 + (nearTop ? 30 : 0), el);
        else {
            const svg = el.tagName.toLowerCase() === 'svg' ? el : el.querySelector('svg');
            if (svg) add(svgToDataUrl(svg), 70 + (nearTop ? 20 : 0), svg);
        }
    }

    // 2. Header / nav images and backgrounds
    for (const el of document.querySelectorAll('header img, nav img, [class*="header"] img, header a, nav a')) {
        const rect = el.getBoundingClientRect();
        if (!sizeOk(rect)) continue;
        const topLeft = rect.top + window.scrollY < 150 && rect.left < window.innerWidth / 2;
        const url = el.tagName === 'IMG' ? (el.currentSrc || el.src) : bgUrl(el);
        if (url) add(url, 60 + (topLeft ? 25 : 0), el);
    }

    // 3. Any image whose src/alt mentions "logo"
    for (const img of document.querySelectorAll('img')) {
        const hint = (img.getAttribute('src') || '') + ' ' + (img.getAttribute('alt') || '');
        if (!/logo/i.test(hint)) continue;
        if (!sizeOk(img.getBoundingClientRect())) continue;
        add(img.currentSrc || img.src, 50, img);
    }

    // 4. Inline SVGs with logo-ish class/id
    for (const svg of document.querySelectorAll('svg')) {
        if (!BRANDISH.test(hintOf(svg))) continue;
        if (!sizeOk(svg.getBoundingClientRect())) continue;
        add(svgToDataUrl(svg), 30, svg);
    }

    if (candidates.length) {
        candidates.sort((a, b) => b.score - a.score);
        return candidates[0].url;
    }

    // 5. Favicon
    const icon = document.querySelector('link[rel="apple-touch-icon"], link[rel="icon"], link[rel="shortcut icon"]');
    if (icon && icon.href) return icon.href;
    return null;
}'''


async def extract_logo(page) -> str | None:
    try:
        logo = await page.evaluate(LOGO_JS)
        if logo:
            logger.info("[branding] logo: %s", logo[:120])
        return logo
    except Exception as e:
        logger.debug("[branding] logo extraction failed: %s", e)
        return None


# ---------------------------------------------------------------------------
# Color math
# ---------------------------------------------------------------------------

def hex_to_rgb(value: str) -> tuple[int, int, int]:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def normalize_hex(value) -> str | None:
    """'#ABC' / 'abcdef' / 'rgb(1, 2, 3)' -> '#aabbcc'. None if unparseable."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    m = re.match(r"rgba?\(\s*(\d+)[,\s]+(\d+)[,\s]+(\d+)(?:[,\s/]+([\d.]+))?", value)
    if m:
        if m.group(4) is not None and float(m.group(4)) == 0:
            return None
        return "#" + "".join(f"{min(int(c), 255):02x}" for c in m.groups()[:3])
    if not value.startswith("#"):
        value = "#" + value
    if re.match(r"^#[0-9a-f]{3}$", value):
        value = "#" + "".join(c * 2 for c in value[1:])
    return value if HEX_RE.match(value) else None


def color_distance(a: str, b: str) -> float:
    """Euclidean distance in RGB space."""
    ra, ga, ba = hex_to_rgb(a)
    rb, gb, bb = hex_to_rgb(b)
    return math.sqrt((ra - rb) ** 2 + (ga - gb) ** 2 + (ba - bb) ** 2)


def _saturation_lightness(hex_color: str) -> tuple[float, float]:
    r, g, b = (c / 255 for c in hex_to_rgb(hex_color))
    high, low = max(r, g, b), min(r, g, b)
    lightness = (high + low) / 2
    if high == low:
        return 0.0, lightness
    delta = high - low
    saturation = delta / (2 - high - low) if lightness > 0.5 else delta / (high + low)
    return saturation, lightness


def _color_penalty(hex_color: str) -> float:
    r, g, b = hex_to_rgb(hex_color)
    saturation, _ = _saturation_lightness(hex_color)
    if max(r, g, b) < 40:
        return 0.1  # near black
    if min(r, g, b) > 225:
        return 0.1  # near white
    if saturation < 0.15:
        return 0.3  # grey-ish
    return 1.0


def rank_color_candidates(candidates: list[dict], limit: int = 3) -> list[str]:
    """
    candidates: [{"color": "#hex", "weight": float, "source": str}]
    Returns up to `limit` distinct colors, strongest first.
    """
    totals: dict[str, float] = {}
    for candidate in candidates:
        color = normalize_hex(candidate.get("color"))
        if not color:
            continue
        weight = float(candidate.get("weight") or 1)
        if candidate.get("source") in ("css-var", "theme-color"):
            weight += DECLARED_COLOR_BOOST
        else:
            weight *= _color_penalty(color)
        totals[color] = totals.get(color, 0) + weight

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    chosen: list[str] = []
    for color, _ in ranked:
        if any(color_distance(color, other) < COLOR_DEDUP_DISTANCE for other in chosen):
            continue
        chosen.append(color)
        if len(chosen) >= limit:
            break
    return chosen


def pick_text_color(text_colors: list[dict]) -> str | None:
    """Most frequent readable (dark-ish) text color."""
    best = None
    best_count = 0
    for entry in text_colors:
        color = normalize_hex(entry.get("color"))
        if not color:
            continue
        _, lightness = _saturation_lightness(color)
        if lightness > 0.6:
            continue
        if entry.get("count", 0) > best_count:
            best, best_count = color, entry.get("count", 0)
    return best


def pick_background_color(backgrounds: list[str]) -> str | None:
    """First light background color, in page order."""
    for value in backgrounds:
        color = normalize_hex(value)
        if color and _saturation_lightness(color)[1] >= 0.85:
            return color
    return None


# ---------------------------------------------------------------------------
# DOM / CSS fallback
# ---------------------------------------------------------------------------

COLOR_CANDIDATES_JS = r'''() => {
    function rgbToHex(rgb) {
        if (!rgb || rgb === 'transparent' || rgb === 'rgba(0, 0, 0, 0)') return null;
        const match = rgb.match(/rgba?\((\d+),\s*(\d+),\s*(\d+)(?:,\s*([\d.]+))?/);
        if (!match) return null;
        if (match[4] !== undefined && parseFloat(match[4]) === 0) return null;
        return '#' + [match[1], match[2], match[3]]
            .map(x => parseInt(x).toString(16).padStart(2, '0'))
            .join('');
    }

    const candidates = [];
    const push = (color, weight, source) => { if (color) candidates.push({color, weight, source}); };

    // Declared brand colors
    const meta = document.querySelector('meta[name="theme-color"]');
    if (meta && meta.content) push(meta.content.trim(), 1, 'theme-color');
    const rootStyle = getComputedStyle(document.documentElement);
    for (const sheet of [...document.styleSheets]) {
        let rules;
        try { rules = sheet.cssRules; } catch (e) { continue; }
        for (const rule of [...(rules || [])].slice(0, 500)) {
            if (!rule.style || rule.selectorText !== ':root') continue;
            for (const prop of rule.style) {
                if (!prop.startsWith('--') || !/primary|brand|accent|main-color|theme/i.test(prop)) continue;
                const value = rootStyle.getPropertyValue(prop).trim();
                if (/^#[0-9a-f]{3,6}$/i.test(value) || /^rgb/i.test(value)) push(value, 1, 'css-var');
            }
        }
    }

    const groups = [
        {selector: 'button, .btn, [class*="button"], [class*="cta"], a[class*="order"], input[type="submit"]', bg: 30, text: 3, border: 8},
        {selector: '[class*="brand"], [class*="logo"], [class*="primary"], [class*="accent"]', bg: 25, text: 6, border: 5},
        {selector: 'nav, header, [class*="navbar"], [class*="header"]', bg: 12, text: 2, border: 2},
        {selector: 'h1, h2, h3', bg: 4, text: 5, border: 1},
        {selector: '[style*="color"], [style*="background"]', bg: 6, text: 2, border: 1},
        {selector: 'a', bg: 2, text: 3, border: 0},
    ];

    for (const group of groups) {
        const els = [...document.querySelectorAll(group.selector)].slice(0, 150);
        for (const el of els) {
            const rect = el.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) continue;
            const s = getComputedStyle(el);
            push(rgbToHex(s.backgroundColor), group.bg, 'background');
            push(rgbToHex(s.color), group.text, 'text');
            if (group.border && s.borderStyle !== 'none' && parseFloat(s.borderWidth) > 0) {
                push(rgbToHex(s.borderColor), group.border, 'border');
            }
            const gradient = (s.backgroundImage || '').match(/rgba?\([^)]+\)/g);
            if (gradient) gradient.slice(0, 3).forEach(c => push(rgbToHex(c), group.bg / 2, 'gradient'));
            for (const pseudo of ['::before', '::after']) {
                const ps = getComputedStyle(el, pseudo);
                if (ps.content && ps.content !== 'none') push(rgbToHex(ps.backgroundColor), group.bg / 3, 'pseudo');
            }
        }
    }

    // Body text colors by frequency
    const textCounts = {};
    for (const el of [...document.querySelectorAll('p, li, span, td')].slice(0, 400)) {
        if (!el.textContent.trim() || el.offsetWidth === 0) continue;
        const color = rgbToHex(getComputedStyle(el).color);
        if (color) textCounts[color] = (textCounts[color] || 0) + 1;
    }

    const backgrounds = [];
    for (const el of [document.body, document.documentElement, document.querySelector('main')]) {
        if (!el) continue;
        const bg = rgbToHex(getComputedStyle(el).backgroundColor);
        if (bg) backgrounds.push(bg);
    }

    return {
        candidates,
        textColors: Object.entries(textCounts).map(([color, count]) => ({color, count})),
        backgrounds,
    };
}'''


async def extract_colors_from_dom(page) -> ColorPalette:
    try:
        data = await page.evaluate(COLOR_CANDIDATES_JS)
    except Exception as e:
        logger.debug("[branding] DOM color analysis failed: %s", e)
        return ColorPalette()

    ranked = rank_color_candidates(data.get("candidates") or [])
    palette = ColorPalette(
        primary=ranked[0] if len(ranked) > 0 else None,
        secondary=ranked[1] if len(ranked) > 1 else None,
        accent=ranked[2] if len(ranked) > 2 else None,
        text=pick_text_color(data.get("textColors") or []),
        background=pick_background_color(data.get("backgrounds") or []),
    )
    logger.info("[branding] DOM palette: %s", palette.model_dump(exclude_none=True))
    return palette


# ---------------------------------------------------------------------------
# Vision
# ---------------------------------------------------------------------------

VISION_PROMPT = (
    "This is a screenshot of a restaurant website. Identify the restaurant's brand colors. "
    "Ignore photos of food; look at the logo, buttons, headings and navigation.\n\n"
    'Respond with ONLY a JSON object: {"primary": "#hex", "secondary": "#hex", "accent": "#hex"}. '
    "Use null for a color you can't identify."
)


def palette_from_vision(data: dict | None) -> ColorPalette | None:
    if not data:
        return None
    colors = {key: normalize_hex(data.get(key)) for key in ("primary", "secondary", "accent")}
    if not colors["primary"]:
        return None
    return ColorPalette(**colors)


async def extract_colors_with_vision(page) -> ColorPalette | None:
    screenshot = await page.screenshot(full_page=True)
    image_b64, media_type = screenshot_to_b64(screenshot, compress=True)
    data = await complete_json(
        [
            {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": image_b64}},
            {"type": "text", "text": VISION_PROMPT},
        ],
        model=get_settings().vision_model,
        max_tokens=300,
    )
    return palette_from_vision(data)


async def extract_colors(page) -> ColorPalette:
    """Vision first; any failure (or an empty answer) falls back to the DOM."""
    try:
        palette = await extract_colors_with_vision(page)
        if palette:
            dom = await extract_colors_from_dom(page)
            # Vision doesn't report text/background; keep the DOM's
            palette.text = dom.text
            palette.background = dom.background
            logger.info("[branding] vision palette: %s", palette.model_dump(exclude_none=True))
            return palette
        logger.info("[branding] vision returned no usable colors, using DOM analysis")
    except Exception as e:
        logger.warning("[branding] vision color extraction failed (%s), using DOM analysis", e)
    return await extract_colors_from_dom(page)
