import asyncio
from types import SimpleNamespace

import pytest

import app.scraper as scraper
from app.models import ContentClassification, ScrapeOptions
from app.scraper import is_acceptable_content, scrape_restaurant_menu


def classification(score, confidence) -> ContentClassification:
    return ContentClassification(score=score, confidence=confidence)


def test_boundary_is_rejected() -> None:
    assert is_acceptable_content(classification(60, 0.6), content_length=0, min_length=200) is False


def test_just_above_boundary_is_accepted() -> None:
    assert is_acceptable_content(classification(61, 0.61), content_length=0, min_length=200) is True


def test_high_score_low_confidence_needs_length_clause() -> None:
    assert is_acceptable_content(classification(90, 0.55), content_length=100, min_length=200) is False
    assert is_acceptable_content(classification(90, 0.55), content_length=200, min_length=200) is True


def test_length_clause_is_strict_on_score_and_confidence() -> None:
    assert is_acceptable_content(classification(41, 0.51), content_length=500, min_length=200) is True
    assert is_acceptable_content(classification(40, 0.9), content_length=500, min_length=200) is False
    assert is_acceptable_content(classification(55, 0.5), content_length=500, min_length=200) is False


def test_options_take_overrides() -> None:
    options = ScrapeOptions.from_settings(max_retries=5, headless=False, timeout=None)
    assert options.max_retries == 5
    assert options.headless is False
    assert options.timeout > 0


# ---------------------------------------------------------------------------
# Retry loop with the browser session faked
# ---------------------------------------------------------------------------

def options(max_retries) -> ScrapeOptions:
    return ScrapeOptions(headless=True, timeout=1000, min_content_length=200, max_retries=max_retries)


@pytest.fixture
def sleeps(monkeypatch) -> list:
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(scraper.asyncio, "sleep", sleep)
    return delays


def fake_attempts(monkeypatch, outcomes) -> list:
    urls = []

    async def scrape_once(url, opts):
        urls.append(url)
        outcome = outcomes[len(urls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome, None, None

    async def classify_content(text):
        if "$" in text:
            return ContentClassification(score=85, confidence=0.9)
        return ContentClassification(score=10, confidence=0.8)

    monkeypatch.setattr(scraper, "_scrape_once", scrape_once)
    monkeypatch.setattr(scraper, "classify_content", classify_content)
    return urls


def test_every_attempt_failing_returns_none(monkeypatch, sleeps) -> None:
    urls = fake_attempts(monkeypatch, [RuntimeError("net::ERR_CONNECTION_RESET")] * 3)

    result = asyncio.run(scrape_restaurant_menu("https://bistro.test/", options(3)))

    assert result is None
    assert len(urls) == 3
    assert sleeps == [2, 4]


def test_rejected_content_is_retried(monkeypatch, sleeps) -> None:
    urls = fake_attempts(monkeypatch, ["Welcome to our restaurant", "Soup $4.00\nSalad $6.00"])

    result = asyncio.run(scrape_restaurant_menu("https://bistro.test/", options(2)))

    assert result.text == "Soup $4.00\nSalad $6.00"
    assert len(urls) == 2
    assert sleeps == [2]


def test_accepted_first_attempt_does_not_sleep(monkeypatch, sleeps) -> None:
    urls = fake_attempts(monkeypatch, ["Soup $4.00\nSalad $6.00"])
    assert asyncio.run(scrape_restaurant_menu("https://bistro.test/", options(3))) is not None
    assert len(urls) == 1
    assert sleeps == []


def test_zero_retries_still_makes_one_attempt(monkeypatch, sleeps) -> None:
    urls = fake_attempts(monkeypatch, [RuntimeError("timeout")])
    assert asyncio.run(scrape_restaurant_menu("https://bistro.test/", options(0))) is None
    assert len(urls) == 1


class FakeBrowser:
    def __init__(self):
        self.closed = 0

    async def new_context(self, **kwargs):
        raise RuntimeError("browser has been closed")

    async def close(self):
        self.closed += 1


class FakePlaywright:
    def __init__(self, browser):
        self.chromium = SimpleNamespace(launch=self._launch)
        self._browser = browser

    async def _launch(self, **kwargs):
        return self._browser

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def test_browser_is_closed_after_a_failed_attempt(monkeypatch, sleeps) -> None:
    browser = FakeBrowser()
    monkeypatch.setattr(scraper, "async_playwright", lambda: FakePlaywright(browser))

    result = asyncio.run(scrape_restaurant_menu("https://bistro.test/", options(2)))

    assert result is None
    assert browser.closed == 2
    assert sleeps == [2]
