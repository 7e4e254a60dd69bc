"""Tests for page fetching."""

import asyncio

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from recipe_harvest.recipe_import.errors import FetchError
from recipe_harvest.recipe_import.fetcher import (
    BrowserSession,
    build_headers,
    fetch_html,
    is_error_page,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


class TestErrorPageDetection:

    def test_indicator_without_recipe_tokens(self):
        assert is_error_page("<h1>404 Page not found</h1>") is True
        assert is_error_page("<p>Please enable JavaScript to continue</p>") is True
        assert is_error_page("<p>Are you a robot or human?</p>") is True

    def test_recipe_tokens_win(self):
        assert is_error_page("<h1>404 Page not found</h1><p>Try another recipe</p>") is False
        assert is_error_page("<h2>Ingredients</h2><p>Serves 404 people</p>") is False

    def test_plain_page(self):
        assert is_error_page("<p>We have been writing since 2009.</p>") is False


class TestFetchHtml:

    def test_headers(self, settings):
        headers = build_headers(settings)
        assert headers["User-Agent"] == settings.user_agent
        assert "text/html" in headers["Accept"]
        assert headers["Accept-Language"] == settings.accept_language

    def test_success(self, settings, html_transport, recipe_page_html):
        transport = html_transport(recipe_page_html)

        page = _run(fetch_html("https://example.com/cake", settings, transport=transport))

        assert page.tier == "http"
        assert page.url == "https://example.com/cake"
        assert "Lemon Drizzle Cake" in page.html
        assert transport.requests == ["https://example.com/cake"]

    def test_sends_browser_user_agent(self, settings, recipe_page_html):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text=recipe_page_html)

        _run(fetch_html("https://example.com/cake", settings, transport=httpx.MockTransport(handler)))
        assert seen["ua"] == settings.user_agent

    def test_http_error_status(self, settings, html_transport):
        with pytest.raises(FetchError, match="HTTP 404"):
            _run(fetch_html("https://example.com/missing", settings, transport=html_transport("gone", 404)))

    def test_timeout(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FetchError, match="timed out"):
            _run(fetch_html("https://example.com/slow", settings, transport=httpx.MockTransport(handler)))

    def test_network_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError):
            _run(fetch_html("https://example.com/down", settings, transport=httpx.MockTransport(handler)))

    def test_interstitial_page_rejected(self, settings, html_transport):
        transport = html_transport("<html><body>Access denied</body></html>")
        with pytest.raises(FetchError, match="error or interstitial"):
            _run(fetch_html("https://example.com/blocked", settings, transport=transport))


class TestBrowserSession:

    def test_not_launched_until_used(self, settings):
        browser = BrowserSession(settings)
        assert browser.is_running is False

    def test_close_without_launch_is_safe(self, settings):
        async def _test():
            async with BrowserSession(settings) as browser:
                pass
            await browser.close()
            return browser

        browser = _run(_test())
        assert browser.is_running is False

    def test_crashed_browser_maps_to_fetch_error_and_is_dropped(self, settings):
        class CrashedBrowser:
            async def new_context(self, **kwargs):
                raise PlaywrightError("Browser.new_context: Target page, context or browser has been closed")

            def is_connected(self):
                return False

        browser = BrowserSession(settings)
        browser._browser = CrashedBrowser()

        with pytest.raises(FetchError, match="Browser navigation failed"):
            _run(browser.render("https://example.com/cake"))
        assert browser.is_running is False

    def test_navigation_error_keeps_live_browser(self, settings):
        class FlakyBrowser:
            async def new_context(self, **kwargs):
                raise PlaywrightError("Timeout 30000ms exceeded.\n=== logs ===\nnavigating...")

            def is_connected(self):
                return True

        browser = BrowserSession(settings)
        flaky = FlakyBrowser()
        browser._browser = flaky

        with pytest.raises(FetchError) as excinfo:
            _run(browser.render("https://example.com/cake"))

        assert str(excinfo.value) == "Browser navigation failed: Timeout 30000ms exceeded."
        assert browser._browser is flaky
