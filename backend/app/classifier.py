"""
Menu content classifier.

Scores arbitrary page text 0-100 for "is this a restaurant menu". Claude is
asked first; anything that goes wrong falls back to a price-density
heuristic. Results are memoized by a fingerprint of the content prefix.
"""

import hashlib
import logging
import re
import time

from app.config import get_settings
from app.llm import call_tool
from app.models import ContentClassification


logger = logging.getLogger(__name__)

# Only this much text is ever looked at (and hashed)
CLASSIFY_PREFIX_CHARS = 6000
MIN_WORDS_FOR_LLM = 50
FALLBACK_CONFIDENCE = 0.3
SHORT_INPUT_CONFIDENCE = 0.4

PRICE_RE = re.compile(r"(?:[$€£]\s?\d{1,4}(?:[.,]\d{2})?)|(?:\b\d{1,4}\.\d{2}\b)")

FOOD_KEYWORDS = [
    "appetizer", "starter", "entree", "entrée", "main", "dessert", "drink",
    "beverage", "salad", "soup", "pasta", "pizza", "burger", "sandwich",
    "brunch", "breakfast", "lunch", "dinner", "noodle", "rice", "curry",
    "seafood", "wine", "beer", "cocktail", "sushi", "roll", "chicken", "beef",
    "pork", "shrimp", "cheese", "sauce", "fries", "grilled", "fried", "served",
    "vegetarian", "vegan", "gluten", "side", "kids", "specials",
]

CATEGORY_HEADERS = [
    "appetizers", "starters", "entrees", "entrées", "mains", "main courses",
    "desserts", "drinks", "beverages", "salads", "soups", "sides", "pasta",
    "pizza", "burgers", "sandwiches", "brunch", "breakfast", "lunch", "dinner",
    "cocktails", "wine", "beer", "specials", "kids menu", "sushi", "rolls",
]

NON_MENU_PHRASES = [
    "privacy policy", "terms of service", "terms and conditions", "cookie policy",
    "all rights reserved", "sign in", "create account", "careers", "job openings",
    "subscribe to our newsletter", "page not found", "404",
]


def content_fingerprint(text: str) -> str:
    """Stable cache key for a piece of content (hash of its bounded prefix)."""
    prefix = (text or "")[:CLASSIFY_PREFIX_CHARS]
    return hashlib.sha256(prefix.encode("utf-8", errors="ignore")).hexdigest()


def count_prices(text: str) -> int:
    return len(PRICE_RE.findall(text or ""))


def heuristic_score(text: str) -> int:
    """Cheap 0-100 menu score from price density, keywords and structure."""
    if not text:
        return 0

    sample = text[:CLASSIFY_PREFIX_CHARS]
    lower = sample.lower()
    score = 0.0

    # Price density, the strongest signal
    prices = count_prices(sample)
    density = prices / max(len(sample) / 1000, 0.001)
    if 5 <= density <= 20:
        score += 40
    elif 0 < density < 5:
        score += 40 * density / 5
    elif density > 20:
        score += 25

    # Food and category vocabulary
    keyword_hits = sum(1 for kw in FOOD_KEYWORDS if kw in lower)
    score += min(keyword_hits * 3, 25)

    # Structure
    lines = [line.strip() for line in sample.splitlines() if line.strip()]
    header_lines = sum(1 for line in lines if line.lower().strip(" :=") in CATEGORY_HEADERS)
    if header_lines:
        score += min(header_lines * 4, 12)
    if prices > 3:
        score += 5
    short_price_lines = sum(1 for line in lines if len(line) < 80 and PRICE_RE.search(line))
    if short_price_lines >= 3:
        score += 10

    penalty = sum(10 for phrase in NON_MENU_PHRASES if phrase in lower)
    score -= min(penalty, 30)

    words = len(text.split())
    if 200 <= words <= 2000:
        score += 10
    elif words > 5000:
        score -= 10

    return int(max(0, min(100, round(score))))


def heuristic_classify(text: str, confidence: float | None = None) -> ContentClassification:
    score = heuristic_score(text)
    if confidence is None:
        # Extreme scores are more trustworthy than ones near the threshold
        confidence = round(0.4 + abs(score - 50) / 100, 2)
    return ContentClassification(
        score=score,
        confidence=max(0.0, min(1.0, confidence)),
        reasoning="heuristic",
    )


class ClassificationCache:
    """In-memory fingerprint -> classification map with a per-entry TTL. Writes purge expired entries."""

    def __init__(self, ttl_seconds: float = 300.0, clock=time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, ContentClassification]] = {}

    def get(self, key: str) -> ContentClassification | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: ContentClassification) -> None:
        now = self._clock()
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_cache = ClassificationCache(ttl_seconds=get_settings().classification_cache_ttl)


def clear_classification_cache() -> None:
    _cache.clear()


CLASSIFY_SCHEMA = {
    "type": "object",
    "properties": {
        "score": {
            "type": "integer",
            "minimum": 0,
            "maximum": 100,
            "description": "How strongly this text is a restaurant menu with dishes and prices (0-100)",
        },
        "confidence": {
            "type": "number",
            "minimum": 0,
            "maximum": 1,
            "description": "Confidence in the score (0.0-1.0)",
        },
        "reasoning": {"type": "string"},
    },
    "required": ["score", "confidence", "reasoning"],
}

CLASSIFY_SYSTEM = (
    "You rate scraped web page text for whether it is a restaurant menu. "
    "A real menu lists dishes or drinks, usually with prices and category headings. "
    "Homepages, about pages, location lists, ordering landing pages and legal pages are not menus."
)


async def _classify_with_llm(text: str) -> ContentClassification:
    result = await call_tool(
        f"Rate this page text:\n\n{text}",
        tool_name="rate_menu_content",
        description="Report how likely the page text is a restaurant menu.",
        input_schema=CLASSIFY_SCHEMA,
        system=CLASSIFY_SYSTEM,
        model=get_settings().classifier_model,
        max_tokens=300,
    )
    score = int(max(0, min(100, round(float(result["score"])))))
    confidence = max(0.0, min(1.0, float(result["confidence"])))
    return ContentClassification(
        score=score,
        confidence=confidence,
        reasoning=str(result.get("reasoning") or "")[:500],
    )


async def classify_content(text: str) -> ContentClassification:
    """
    Classify page text. Never raises: LLM failures degrade to the heuristic
    with confidence 0.3. Safe to call repeatedly on the same page state.
    """
    sample = (text or "")[:CLASSIFY_PREFIX_CHARS]
    key = content_fingerprint(sample)

    cached = _cache.get(key)
    if cached is not None:
        return cached

    if len(sample.split()) < MIN_WORDS_FOR_LLM:
        result = heuristic_classify(sample, confidence=SHORT_INPUT_CONFIDENCE)
    else:
        try:
            result = await _classify_with_llm(sample)
        except Exception as e:
            logger.warning("[classifier] LLM classification failed (%s), using heuristic", e)
            result = heuristic_classify(sample, confidence=FALLBACK_CONFIDENCE)

    _cache.set(key, result)
    logger.debug("[classifier] score=%s confidence=%.2f", result.score, result.confidence)
    return result
