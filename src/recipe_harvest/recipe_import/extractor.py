"""Main recipe extraction orchestration."""

import logging
import re
from typing import Callable
from urllib.parse import urlparse, urlunparse

import httpx

from recipe_harvest.config import Settings, get_settings

from .errors import FetchError, InvalidURLError, NoRecipeFound
from .fetcher import BROWSER_TIER, HTTP_TIER, BrowserSession, FetchedPage, fetch_html
from .heuristics import PLACEHOLDER_TITLE, extract_with_heuristics
from .json_ld import extract_with_json_ld
from .microdata import extract_with_microdata
from .models import ExtractionCandidate, ExtractionMethod, ExtractionResult
from .normalizer import DEFAULT_TITLE, normalize_candidate
from .patterns import extract_with_patterns
from .sites import extract_with_site_scraper

logger = logging.getLogger(__name__)

Strategy = Callable[[str, str], ExtractionCandidate | None]

STATIC_STRATEGIES: list[tuple[ExtractionMethod, Strategy]] = [
    (ExtractionMethod.JSON_LD, extract_with_json_ld),
    (ExtractionMethod.MICRODATA, extract_with_microdata),
    (ExtractionMethod.PATTERN, extract_with_patterns),
]

FULL_STRATEGIES: list[tuple[ExtractionMethod, Strategy]] = STATIC_STRATEGIES + [
    (ExtractionMethod.SITE_SPECIFIC, extract_with_site_scraper),
    (ExtractionMethod.HEURISTIC, extract_with_heuristics),
]

PLACEHOLDER_TITLES = {PLACEHOLDER_TITLE, DEFAULT_TITLE}


def validate_url(url: str) -> str:
    """
    Check that a submitted URL is an absolute http(s) URL.

    Returns the stripped URL.

    Raises:
        InvalidURLError: if the URL is missing or malformed
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL is required")

    url = url.strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        raise InvalidURLError("URL must start with http:// or https://")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError("Invalid URL format") from e
    if not parsed.hostname:
        raise InvalidURLError("Invalid URL format")

    return url


def canonicalize_url(url: str) -> str:
    """
    Canonical form used as the job key.

    Scheme and host are lower-cased, the fragment is dropped and a single
    trailing slash is removed from non-root paths. Query and "www." are
    left alone since they can point at different pages.
    """
    parsed = urlparse(validate_url(url))
    path = parsed.path
    if path.endswith("/") and path != "/":
        path = path[:-1]
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, "")
    )


def is_valid_candidate(candidate: ExtractionCandidate | None) -> bool:
    """
    Accept a candidate that looks like a real recipe.

    Either a title plus ingredients or instructions, or both ingredients
    and instructions. Placeholder titles filled in by a strategy do not
    count as a title.
    """
    if candidate is None:
        return False
    has_title = bool(candidate.title) and candidate.title not in PLACEHOLDER_TITLES
    has_ingredients = bool(candidate.ingredients)
    has_instructions = bool(candidate.instructions)
    return (has_title and (has_ingredients or has_instructions)) or (
        has_ingredients and has_instructions
    )


def run_strategies(
    html: str,
    url: str,
    strategies: list[tuple[ExtractionMethod, Strategy]],
) -> tuple[ExtractionMethod, ExtractionCandidate] | None:
    """Run strategies in order and return the first accepted candidate."""
    for method, strategy in strategies:
        try:
            candidate = strategy(html, url)
        except Exception as e:
            logger.warning(f"{method.value} strategy failed for {url}: {e}")
            continue

        if is_valid_candidate(candidate):
            logger.info(f"{method.value} extraction succeeded for {url}")
            return method, candidate

        logger.debug(f"{method.value} found no usable recipe on {url}")
    return None


async def extract_recipe(
    url: str,
    settings: Settings | None = None,
    browser: BrowserSession | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ExtractionResult:
    """
    Extract a recipe from a URL.

    Extraction pipeline:
    1. Plain HTTP fetch, then the structured-data and pattern strategies
    2. Rendered fetch in the headless browser, then every strategy
    3. Failure when no tier produced an accepted candidate

    Without a browser the HTTP tier runs every strategy instead. When the
    rendered fetch fails, the strategies held back for it still run on the
    HTML the plain fetch already returned.

    Args:
        url: The URL of the recipe page
        settings: Fetch settings (defaults to the cached settings)
        browser: Shared browser session for the rendered tier
        transport: Optional httpx transport (tests)

    Returns:
        ExtractionResult with a normalized candidate on success
    """
    settings = settings or get_settings()
    url = validate_url(url)
    use_browser = browser is not None and settings.browser_enabled

    tiers: list[tuple[str, Callable, list]] = [
        (
            HTTP_TIER,
            lambda: fetch_html(url, settings, transport=transport),
            STATIC_STRATEGIES if use_browser else FULL_STRATEGIES,
        ),
    ]
    if use_browser:
        tiers.append((BROWSER_TIER, lambda: browser.render(url), FULL_STRATEGIES))

    pages: dict[str, FetchedPage] = {}
    for tier, fetch, strategies in tiers:
        logger.info(f"Fetching {url} via {tier}")
        try:
            page: FetchedPage = await fetch()
        except FetchError as e:
            logger.warning(f"{tier} fetch failed for {url}: {e}")
            continue

        pages[tier] = page
        accepted = run_strategies(page.html, url, strategies)
        if accepted:
            return _success(accepted, url, page.tier)

    if use_browser and HTTP_TIER in pages and BROWSER_TIER not in pages:
        logger.info(f"Rendered fetch unavailable for {url}, finishing strategies on plain HTML")
        accepted = run_strategies(
            pages[HTTP_TIER].html, url, FULL_STRATEGIES[len(STATIC_STRATEGIES):]
        )
        if accepted:
            return _success(accepted, url, HTTP_TIER)

    logger.info(f"All extraction methods failed for {url}")
    return ExtractionResult(
        success=False,
        method=ExtractionMethod.FAILED,
        error=str(NoRecipeFound()),
    )


def _success(
    accepted: tuple[ExtractionMethod, ExtractionCandidate], url: str, tier: str
) -> ExtractionResult:
    method, candidate = accepted
    return ExtractionResult(
        success=True,
        method=method,
        candidate=normalize_candidate(candidate, url),
        fetch_tier=tier,
    )
