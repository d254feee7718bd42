import asyncio

from app.classifier import (
    PRICE_RE,
    ClassificationCache,
    classify_content,
    content_fingerprint,
    heuristic_classify,
    heuristic_score,
)
from app.models import ContentClassification


MENU_LINES = [
    "Grilled Chicken Sandwich with lettuce, tomato and house aioli on a toasted brioche bun $12.50",
    "Classic Caesar Salad with romaine hearts, shaved parmesan and garlic croutons $10.00",
    "Spicy Tuna Roll with cucumber, sriracha mayo and toasted sesame seeds on top $9.75",
    "Margherita Pizza with san marzano tomato, fresh mozzarella and basil leaves $14.00",
    "Beef Burger with aged cheddar, caramelized onions and hand cut fries on the side $15.25",
    "Tomato Basil Soup served with grilled cheese croutons and a drizzle of cream $7.50",
    "Chocolate Lava Cake with vanilla bean ice cream and fresh raspberries $8.00",
    "Shrimp Pasta with garlic butter, chili flakes, lemon zest and parsley $18.50",
    "Vegetable Curry with jasmine rice, naan bread and mango chutney on the side $13.00",
    "House Lemonade freshly squeezed with mint and a touch of cane sugar $4.50",
]


def menu_text() -> str:
    return "DINNER\n" + "\n".join(MENU_LINES)


def test_price_density_of_fixture_is_in_band() -> None:
    text = menu_text()
    density = len(PRICE_RE.findall(text)) / (len(text) / 1000)
    assert 5 <= density <= 20


def test_removing_prices_lowers_heuristic_score() -> None:
    with_prices = menu_text()
    without_prices = PRICE_RE.sub("", with_prices)
    assert heuristic_score(with_prices) > heuristic_score(without_prices)


def test_heuristic_score_is_bounded() -> None:
    assert heuristic_score("") == 0
    for text in [menu_text(), "privacy policy terms of service sign in careers 404", "$1.00 " * 500]:
        assert 0 <= heuristic_score(text) <= 100


def test_non_menu_page_scores_low() -> None:
    about = (
        "About us. Our story began in 1998. Careers. Job openings. Privacy policy. "
        "Terms of service. All rights reserved. Subscribe to our newsletter."
    )
    assert heuristic_score(about) < heuristic_score(menu_text())
    assert heuristic_score(about) < 30


def test_is_menu_follows_score() -> None:
    assert ContentClassification(score=51, confidence=0.5).is_menu is True
    assert ContentClassification(score=50, confidence=0.9).is_menu is False
    assert heuristic_classify(menu_text()).is_menu == (heuristic_score(menu_text()) > 50)


def test_fingerprint_uses_bounded_prefix() -> None:
    base = "x" * 6000
    assert content_fingerprint(base + "tail one") == content_fingerprint(base + "tail two")
    assert content_fingerprint("a menu") != content_fingerprint("another menu")


def test_cache_entries_expire() -> None:
    now = [0.0]
    cache = ClassificationCache(ttl_seconds=300, clock=lambda: now[0])
    value = ContentClassification(score=70, confidence=0.8)
    cache.set("k", value)

    now[0] = 299
    assert cache.get("k") == value
    now[0] = 301
    assert cache.get("k") is None
    assert len(cache) == 0


def test_expired_entries_are_purged_on_write() -> None:
    now = [0.0]
    cache = ClassificationCache(ttl_seconds=300, clock=lambda: now[0])
    value = ContentClassification(score=70, confidence=0.8)
    for key in ("a", "b", "c"):
        cache.set(key, value)

    now[0] = 200
    cache.set("d", value)
    assert len(cache) == 4

    now[0] = 400
    cache.set("e", value)
    assert len(cache) == 2
    assert cache.get("d") == value
    assert cache.get("a") is None


def test_short_input_skips_llm(fake_llm) -> None:
    client = fake_llm(tool_input={"score": 99, "confidence": 0.99, "reasoning": "x"})
    result = asyncio.run(classify_content("Pizza $10.00 Pasta $12.00"))
    assert client.messages.calls == []
    assert result.confidence == 0.4


def test_llm_result_is_used_and_cached(fake_llm) -> None:
    client = fake_llm(tool_input={"score": 88, "confidence": 0.9, "reasoning": "lists dishes"})
    text = menu_text()

    first = asyncio.run(classify_content(text))
    second = asyncio.run(classify_content(text))

    assert first.score == 88
    assert first.confidence == 0.9
    assert second == first
    assert len(client.messages.calls) == 1


def test_llm_failure_falls_back_to_heuristic() -> None:
    # the autouse fixture installs a client that always raises
    result = asyncio.run(classify_content(menu_text()))
    assert result.confidence == 0.3
    assert result.score == heuristic_score(menu_text())


def test_llm_scores_are_clamped(fake_llm) -> None:
    fake_llm(tool_input={"score": 140, "confidence": 1.7, "reasoning": ""})
    result = asyncio.run(classify_content(menu_text()))
    assert result.score == 100
    assert result.confidence == 1.0
