import asyncio
from types import SimpleNamespace

import app.expander as expander
from app.expander import (
    CategoryAccumulator,
    click_through_categories_and_extract,
    expand_menu_content,
    has_menu_signals,
    text_fingerprint,
)


APPETIZERS_TEXT = "Appetizers\nSpring Roll crispy vegetables $5.00\nDumplings pork and chive $7.00"
MAINS_TEXT = "Mains\nSteak Frites with pepper sauce $30.00\nHalf Chicken roasted lemon $24.00"
DESSERTS_TEXT = "Desserts\nCreme Brulee vanilla bean $9.00\nChocolate Torte salted caramel $10.00"

APPETIZERS = "<p>Spring Roll crispy vegetables $5.00</p><p>Dumplings pork and chive $7.00</p>"
MAINS = "<p>Steak Frites with pepper sauce $30.00</p><p>Half Chicken roasted lemon $24.00</p>"
DESSERTS = "<p>Creme Brulee vanilla bean $9.00</p><p>Chocolate Torte salted caramel $10.00</p>"

ITEMS = ("Spring Roll", "Dumplings", "Steak Frites", "Half Chicken", "Creme Brulee", "Chocolate Torte")
HEADERS = ("=== APPETIZERS ===", "=== MAINS ===", "=== DESSERTS ===")


def test_fingerprint_ignores_case_and_whitespace() -> None:
    assert text_fingerprint("Soup  $4.00\nSalad $6.00") == text_fingerprint("soup $4.00 salad   $6.00")
    assert text_fingerprint("Soup $4.00") != text_fingerprint("Soup $5.00")


def test_fingerprint_of_long_text_uses_slices() -> None:
    long_a = "a" * 300 + "b" * 300 + "c" * 300
    long_b = "a" * 300 + "x" + "b" * 299 + "c" * 300
    assert text_fingerprint(long_a) != text_fingerprint("z" + long_a[1:])
    # only the prefix, middle and suffix slices count
    assert text_fingerprint(long_b) == text_fingerprint(long_a)


def test_same_content_twice_is_one_block() -> None:
    acc = CategoryAccumulator()
    assert acc.add("Lunch", "Soup $4.00\nSalad $6.00")
    assert not acc.add("Lunch", "Soup $4.00\nSalad $6.00")
    assert not acc.add("Everything", "  soup $4.00 salad $6.00 ")
    assert len(acc) == 1


def test_contained_text_is_dropped() -> None:
    acc = CategoryAccumulator()
    acc.add("All", "Soup $4.00 Salad $6.00 Steak $30.00")
    assert not acc.add("Starters", "Salad $6.00")
    assert acc.add("Drinks", "Cola $3.00")
    assert acc.render() == "=== ALL ===\n\nSoup $4.00 Salad $6.00 Steak $30.00\n\n=== DRINKS ===\n\nCola $3.00"
    assert acc.covered_length() == len("Soup $4.00 Salad $6.00 Steak $30.00") + len("Cola $3.00")


def test_block_containing_earlier_blocks_keeps_only_new_lines() -> None:
    acc = CategoryAccumulator()
    acc.add("Appetizers", APPETIZERS_TEXT)
    acc.add("Mains", MAINS_TEXT)
    everything = "\n".join([
        APPETIZERS_TEXT, MAINS_TEXT,
        "Kids Pasta butter and parmesan $8.00", "Kids Burger with fries $9.00",
    ])

    assert acc.add("Kids", everything)

    text = acc.render()
    assert text.count("Spring Roll") == 1
    assert text.count("Steak Frites") == 1
    assert "=== KIDS ===\n\nKids Pasta butter and parmesan $8.00\nKids Burger with fries $9.00" in text


def test_block_containing_earlier_blocks_with_little_new_text_is_dropped() -> None:
    acc = CategoryAccumulator()
    acc.add("Appetizers", APPETIZERS_TEXT)
    acc.add("Mains", MAINS_TEXT)

    assert not acc.add("Kids", APPETIZERS_TEXT + "\n" + MAINS_TEXT + "\nKids eat free")
    assert acc.render().count("Spring Roll") == 1
    assert len(acc) == 2


def test_menu_signals() -> None:
    assert has_menu_signals("Soup $4.00\nSalad $6.00")
    assert has_menu_signals("Our appetizers, salads and desserts are made daily")
    assert not has_menu_signals("Welcome to our restaurant. Call us to book.")
    assert not has_menu_signals("")


# ---------------------------------------------------------------------------
# Click-through and entry point with the page helpers faked
# ---------------------------------------------------------------------------

def fake_click_through(monkeypatch, page_text, revealed) -> None:
    async def main_content_text(page):
        return page_text

    async def discover_categories(page):
        return [{"text": name, "href": "", "isTab": True, "score": 100} for name in revealed]

    async def click_in_page_tab(page, name):
        return revealed[name]

    monkeypatch.setattr(expander, "main_content_text", main_content_text)
    monkeypatch.setattr(expander, "discover_categories", discover_categories)
    monkeypatch.setattr(expander, "_click_in_page_tab", click_in_page_tab)


def test_click_through_keeps_each_section_once(monkeypatch) -> None:
    page_text = "\n".join(["Our Menu", APPETIZERS_TEXT, MAINS_TEXT, DESSERTS_TEXT, "All prices include tax"])
    fake_click_through(monkeypatch, page_text, {
        "Appetizers": APPETIZERS_TEXT,
        "Mains": MAINS_TEXT,
        "Desserts": DESSERTS_TEXT,
        # a control outside any section reveals the whole page
        "All prices include tax": page_text,
    })

    text = asyncio.run(click_through_categories_and_extract(SimpleNamespace(url="https://bistro.test/menu")))

    for header in HEADERS:
        assert header in text
    for item in ITEMS:
        assert text.count(item) == 1
    assert "=== ALL PRICES INCLUDE TAX ===" not in text


def test_thin_category_blocks_keep_the_rest_of_the_page(monkeypatch) -> None:
    about = "Family owned since 1987, we cook everything from scratch with produce from local farms. " * 5
    page_text = about.strip() + "\n" + APPETIZERS_TEXT
    fake_click_through(monkeypatch, page_text, {"Appetizers": APPETIZERS_TEXT})

    text = asyncio.run(click_through_categories_and_extract(SimpleNamespace(url="https://bistro.test/")))

    assert text.startswith("Family owned since 1987")
    assert text.count("Spring Roll") == 1
    assert "=== APPETIZERS ===" in text


def test_click_through_without_categories_returns_page_text(monkeypatch) -> None:
    fake_click_through(monkeypatch, "Soup $4.00\nSalad $6.00", {})
    text = asyncio.run(click_through_categories_and_extract(SimpleNamespace(url="https://bistro.test/")))
    assert text == "Soup $4.00\nSalad $6.00"


def fake_expansion_steps(monkeypatch, direct) -> list:
    calls = []

    async def extract_tabbed_content_directly(page):
        calls.append("direct")
        return direct

    async def scroll_for_lazy_content(page, is_spa=False):
        calls.append(("scroll", is_spa))

    async def expand_sections(page):
        calls.append("accordions")

    async def detect_unsupported_menu_formats(page):
        calls.append("formats")
        return []

    async def click_through(page):
        calls.append("click-through")
        return "clicked text"

    monkeypatch.setattr(expander, "extract_tabbed_content_directly", extract_tabbed_content_directly)
    monkeypatch.setattr(expander, "scroll_for_lazy_content", scroll_for_lazy_content)
    monkeypatch.setattr(expander, "expand_sections", expand_sections)
    monkeypatch.setattr(expander, "detect_unsupported_menu_formats", detect_unsupported_menu_formats)
    monkeypatch.setattr(expander, "click_through_categories_and_extract", click_through)
    return calls


def test_expansion_runs_steps_in_order(monkeypatch) -> None:
    calls = fake_expansion_steps(monkeypatch, direct=None)

    text = asyncio.run(expander.expand_menu_content(object(), is_spa=True))

    assert text == "clicked text"
    assert calls == ["direct", ("scroll", True), "accordions", "formats", "click-through"]


def test_direct_tab_extraction_short_circuits(monkeypatch) -> None:
    calls = fake_expansion_steps(monkeypatch, direct="=== MAINS ===\n\nSteak $30.00")

    text = asyncio.run(expander.expand_menu_content(object()))

    assert text == "=== MAINS ===\n\nSteak $30.00"
    assert calls == ["direct"]


# ---------------------------------------------------------------------------
# In-browser checks (skipped without Chromium)
# ---------------------------------------------------------------------------

CLICK_COUNTER = "<script>window.__clicks = 0; document.addEventListener('click', () => window.__clicks++, true);</script>"


def test_plain_sections_are_each_collected_once(run_on_page) -> None:
    html = f"""<html><body>{CLICK_COUNTER}
    <header><a href="#">Home</a><a href="#">Contact</a></header>
    <main>
      <h1>Our Menu</h1>
      <section><h2>Appetizers</h2>{APPETIZERS}</section>
      <section><h2>Mains</h2>{MAINS}</section>
      <section><h2>Desserts</h2>{DESSERTS}</section>
      <ul><li>All prices include tax</li></ul>
    </main>
    </body></html>"""

    text, _ = run_on_page(html, click_through_categories_and_extract)

    for header in HEADERS:
        assert header in text
    for item in ITEMS:
        assert text.count(item) == 1


def test_aria_tabs_are_read_without_clicking(run_on_page) -> None:
    panels = [("Appetizers", APPETIZERS), ("Mains", MAINS), ("Desserts", DESSERTS)]
    tabs = "".join(
        f'<button role="tab" id="t{i}" aria-controls="p{i}">{name}</button>'
        for i, (name, _) in enumerate(panels)
    )
    bodies = "".join(
        f'<div role="tabpanel" id="p{i}" {"" if i == 0 else "hidden"}>{body}</div>'
        for i, (_, body) in enumerate(panels)
    )
    html = f"<html><body>{CLICK_COUNTER}<main><div role='tablist'>{tabs}</div>{bodies}</main></body></html>"

    text, clicks = run_on_page(html, expand_menu_content)

    assert clicks == 0
    for header in HEADERS:
        assert header in text
    for item in ITEMS:
        assert text.count(item) == 1
