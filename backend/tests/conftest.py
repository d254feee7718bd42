import asyncio
import itertools
from types import SimpleNamespace

import pytest
from playwright.async_api import async_playwright

from app import llm
from app.classifier import clear_classification_cache
from app.database import MenuStore


class FakeStream:
    def __init__(self, deltas, error=None):
        self._deltas = deltas
        self._error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        return self._iterate()

    async def _iterate(self):
        for delta in self._deltas:
            yield delta
        if self._error is not None:
            raise self._error


class FakeMessages:
    def __init__(self, deltas=None, tool_input=None, error=None, stream_error=None):
        self.deltas = deltas or []
        self.tool_input = tool_input
        self.error = error
        self.stream_error = stream_error
        self.calls = []

    def stream(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return FakeStream(self.deltas, self.stream_error)

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        block = SimpleNamespace(type="tool_use", name=kwargs["tool_choice"]["name"], input=self.tool_input)
        return SimpleNamespace(content=[block])


class FakeAnthropic:
    """Stands in for anthropic.AsyncAnthropic: scripted deltas / tool input."""

    def __init__(self, **kwargs):
        self.messages = FakeMessages(**kwargs)


class InMemoryMenuStore(MenuStore):
    def __init__(self):
        self.restaurants = []
        self.categories = []
        self.items = []
        self._ids = itertools.count(1)
        self.fail_categories = set()

    async def get_restaurant_by_place_id(self, place_id):
        for restaurant in self.restaurants:
            if restaurant["google_place_id"] == place_id:
                return restaurant
        return None

    async def insert_restaurant(self, data):
        record = {**data, "id": f"r{next(self._ids)}"}
        self.restaurants.append(record)
        return record

    async def insert_category(self, restaurant_id, name, display_order):
        if name in self.fail_categories:
            raise RuntimeError(f"insert failed for {name}")
        record = {"id": f"c{next(self._ids)}", "restaurant_id": restaurant_id,
                  "name": name, "display_order": display_order}
        self.categories.append(record)
        return record["id"]

    async def insert_items(self, restaurant_id, category_id, items):
        for item in items:
            self.items.append({"restaurant_id": restaurant_id, "category_id": category_id,
                               "name": item.name, "description": item.description, "price": item.price})
        return len(items)

    def category_named(self, name):
        return next(c for c in self.categories if c["name"] == name)

    def items_in(self, category_id):
        return [i for i in self.items if i["category_id"] == category_id]


@pytest.fixture(autouse=True)
def offline_llm():
    """Every test starts with an LLM that fails, so nothing reaches the network."""
    llm.set_client(FakeAnthropic(error=RuntimeError("LLM disabled in tests")))
    clear_classification_cache()
    yield
    llm.set_client(None)
    clear_classification_cache()


@pytest.fixture
def fake_llm():
    def install(**kwargs):
        client = FakeAnthropic(**kwargs)
        llm.set_client(client)
        return client
    return install


@pytest.fixture
def store():
    return InMemoryMenuStore()


class FakePage:
    """Enough of a Playwright page for helpers that only evaluate scripts and wait."""

    def __init__(self, url="https://bistro.test/", results=None, error=None):
        self.url = url
        self.results = list(results or [])
        self.error = error
        self.evaluated = []
        self.waited = []

    async def evaluate(self, script, arg=None):
        self.evaluated.append(script)
        if self.error is not None:
            raise self.error
        return self.results.pop(0) if self.results else None

    async def wait_for_timeout(self, ms):
        self.waited.append(ms)


async def _on_page(html, action):
    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch()
        except Exception:
            return None, None
        try:
            page = await browser.new_page()
            await page.set_content(html)
            result = await action(page)
            clicks = await page.evaluate("window.__clicks || 0")
            return result, clicks
        finally:
            await browser.close()


@pytest.fixture
def run_on_page():
    """run(html, action) -> (action result, click count); skips without Chromium."""
    def run(html, action):
        result, clicks = asyncio.run(_on_page(html, action))
        if result is None and clicks is None:
            pytest.skip("chromium is not installed")
        return result, clicks
    return run
