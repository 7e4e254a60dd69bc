"""
Pytest configuration and fixtures for Recipe Harvest tests.
"""

import os
from collections.abc import Callable

import httpx
import pytest
from unittest.mock import MagicMock

# Set test environment before importing recipe_harvest modules
os.environ["HARVEST_ENV"] = "development"
os.environ["HARVEST_BROWSER_ENABLED"] = "false"
os.environ["HARVEST_STORAGE_BACKEND"] = "memory"

from recipe_harvest.config import Settings
from recipe_harvest.recipe_import.fetcher import FetchedPage


RECIPE_PAGE_HTML = """
<html>
<head>
  <title>Lemon Drizzle Cake | Example Kitchen</title>
  <script type="application/ld+json">{ this is not json </script>
  <script type="application/ld+json">
  {
    "@context": "https://schema.org",
    "@graph": [
      {"@type": "WebPage", "name": "Lemon Drizzle Cake page"},
      {
        "@type": ["Recipe"],
        "name": "Lemon Drizzle Cake",
        "image": {"@type": "ImageObject", "url": "https://example.com/cake.jpg"},
        "description": "A zesty cake &amp; sticky glaze.",
        "totalTime": "PT1H15M",
        "recipeYield": ["8", "8 slices"],
        "recipeIngredient": ["225g butter", "1 1/2 cups sugar", "4 eggs", "2 lemons, zested"],
        "recipeInstructions": [
          {
            "@type": "HowToSection",
            "name": "Cake",
            "itemListElement": [
              {"@type": "HowToStep", "text": "Heat oven to 180C."},
              {"@type": "HowToStep", "text": "Beat the butter and sugar until pale."}
            ]
          },
          {"@type": "HowToStep", "text": "Bake for 45 minutes."}
        ],
        "recipeCuisine": "British",
        "keywords": "cake, lemon, baking",
        "nutrition": {"@type": "NutritionInformation", "calories": "320 kcal", "fatContent": "14 g"}
      }
    ]
  }
  </script>
</head>
<body><h1>Lemon Drizzle Cake</h1></body>
</html>
"""

# Real page, but nothing any strategy accepts
NO_RECIPE_HTML = """
<html><body><h2>Our story</h2><p>We have been writing since 2009.</p></body></html>
"""


@pytest.fixture
def recipe_page_html() -> str:
    return RECIPE_PAGE_HTML


@pytest.fixture
def no_recipe_html() -> str:
    return NO_RECIPE_HTML


@pytest.fixture
def settings() -> Settings:
    """Settings with the browser tier disabled and in-memory storage."""
    return Settings(browser_enabled=False, storage_backend="memory", _env_file=None)


@pytest.fixture
def html_transport() -> Callable[..., httpx.MockTransport]:
    """
    Build an httpx.MockTransport serving fixed HTML.

    The returned transport records every requested URL in .requests.
    """

    def factory(html: str, status_code: int = 200) -> httpx.MockTransport:
        requests: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(str(request.url))
            return httpx.Response(status_code, text=html, headers={"content-type": "text/html"})

        transport = httpx.MockTransport(handler)
        transport.requests = requests
        return transport

    return factory


class FakeBrowser:
    """Stands in for BrowserSession; serves canned rendered HTML."""

    def __init__(self, html: str | None = None, error: Exception | None = None):
        self.html = html
        self.error = error
        self.rendered: list[str] = []
        self.closed = False

    async def render(self, url: str) -> FetchedPage:
        self.rendered.append(url)
        if self.error is not None:
            raise self.error
        return FetchedPage(url=url, html=self.html or "", tier="browser")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_browser() -> type[FakeBrowser]:
    return FakeBrowser


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for store tests."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.range.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[], count=0)

    mock_client.table.return_value = mock_table

    return mock_client
