"""
Page fetching.

Two tiers, cheapest first:
- fetch_html: plain HTTP GET with browser-like headers (httpx)
- BrowserSession.render: headless Chromium via Playwright, for pages that
  only produce their recipe markup after scripts run

The browser is launched lazily on first use and released explicitly with
close() (or by leaving the async context). Each render gets its own
browser context so cookies and storage never leak between extractions.
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from recipe_harvest.config import Settings, get_settings

from .errors import FetchError

logger = logging.getLogger(__name__)

HTTP_TIER = "http"
BROWSER_TIER = "browser"

ERROR_PAGE_INDICATORS = [
    "page not found",
    "404",
    "error",
    "not available",
    "access denied",
    "blocked",
    "redirected",
    "please enable javascript",
    "enable javascript",
    "robot or human",
]

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]


@dataclass
class FetchedPage:
    """HTML returned by one fetch tier."""

    url: str
    html: str
    tier: str


def build_headers(settings: Settings) -> dict[str, str]:
    """Browser-like request headers."""
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": settings.accept_language,
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
    }


def is_error_page(html: str) -> bool:
    """
    Detect error and interstitial pages.

    A page counts as an error page when it mentions a failure indicator
    and contains neither "recipe" nor "ingredients".
    """
    lowered = html.lower()
    if "recipe" in lowered or "ingredients" in lowered:
        return False
    return any(indicator in lowered for indicator in ERROR_PAGE_INDICATORS)


async def fetch_html(
    url: str,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchedPage:
    """
    Fetch a page over plain HTTP.

    Raises:
        FetchError: on timeout, network failure, non-2xx status, or an
            error/interstitial page
    """
    settings = settings or get_settings()

    try:
        async with httpx.AsyncClient(
            headers=build_headers(settings),
            follow_redirects=True,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException as e:
        raise FetchError("Request timed out") from e
    except httpx.HTTPStatusError as e:
        raise FetchError(f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to fetch page: {e}") from e

    html = response.text
    if is_error_page(html):
        raise FetchError("Detected error or interstitial page")

    return FetchedPage(url=str(response.url), html=html, tier=HTTP_TIER)


class BrowserSession:
    """
    Lazily launched headless browser owned by the extraction pipeline.

    Usage:
        async with BrowserSession(settings) as browser:
            page = await browser.render(url)
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._playwright = None
        self._browser = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def acquire(self):
        """Launch the browser if it is not running yet."""
        async with self._lock:
            if self._browser is None:
                logger.info("Launching headless browser")
                self._playwright = await async_playwright().start()
                try:
                    self._browser = await self._playwright.chromium.launch(
                        headless=True,
                        args=BROWSER_ARGS,
                    )
                except Exception:
                    await self._playwright.stop()
                    self._playwright = None
                    raise
            return self._browser

    async def render(self, url: str) -> FetchedPage:
        """
        Load a page in a fresh browser context and return the rendered HTML.

        A browser found disconnected is dropped so the next render
        relaunches it.

        Raises:
            FetchError: if the browser cannot start or navigation fails
        """
        try:
            browser = await self.acquire()
        except PlaywrightError as e:
            raise FetchError(f"Headless browser unavailable: {_first_line(e)}") from e

        context = None
        try:
            context = await browser.new_context(
                user_agent=self.settings.user_agent,
                extra_http_headers={"Accept-Language": self.settings.accept_language},
            )
            page = await context.new_page()
            timeout_ms = self.settings.browser_timeout_seconds * 1000
            response = await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
            if response is not None and response.status >= 400:
                raise FetchError(f"HTTP {response.status}")
            html = await page.content()
            return FetchedPage(url=page.url, html=html, tier=BROWSER_TIER)
        except PlaywrightError as e:
            # TimeoutError subclasses playwright's Error
            if not browser.is_connected():
                await self._discard(browser)
            raise FetchError(f"Browser navigation failed: {_first_line(e)}") from e
        finally:
            if context is not None and browser.is_connected():
                await context.close()

    async def _discard(self, browser) -> None:
        async with self._lock:
            if self._browser is browser:
                logger.warning("Headless browser disconnected, relaunching on next render")
                self._browser = None
                if self._playwright is not None:
                    await self._playwright.stop()
                    self._playwright = None

    async def close(self) -> None:
        """Release the browser and the Playwright driver."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                finally:
                    self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                finally:
                    self._playwright = None
                logger.info("Headless browser closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _first_line(error: Exception) -> str:
    lines = str(error).strip().splitlines()
    return lines[0] if lines else type(error).__name__
