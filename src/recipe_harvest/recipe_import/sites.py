"""
Site-specific scrapers.

SITE_SCRAPERS maps a normalized domain (hostname without "www.") to a
hand-tuned scraper. New sites are added with the register_site decorator;
the strategy chain never changes. Domains without a hand-tuned entry are
handed to the recipe-scrapers library when it knows the site.
"""

import logging
from typing import Callable

from bs4 import BeautifulSoup
from recipe_scrapers import SCRAPERS, scrape_html

from .classifier import is_navigation_text, split_large_block
from .models import ExtractionCandidate, Ingredient, InstructionStep
from .normalizer import (
    build_steps,
    clean_text,
    extract_domain,
    extract_image_url,
    parse_duration,
    parse_ingredient,
    parse_nutrition,
    parse_servings,
)

logger = logging.getLogger(__name__)

SiteScraper = Callable[[str, str], ExtractionCandidate | None]

SITE_SCRAPERS: dict[str, SiteScraper] = {}


def register_site(*domains: str) -> Callable[[SiteScraper], SiteScraper]:
    """Register a scraper for one or more domains."""

    def decorator(fn: SiteScraper) -> SiteScraper:
        for domain in domains:
            SITE_SCRAPERS[domain.lower().removeprefix("www.")] = fn
        return fn

    return decorator


def get_site_scraper(url: str) -> SiteScraper | None:
    """Hand-tuned scraper, or the recipe-scrapers adapter, for the URL's domain."""
    domain = extract_domain(url)
    if domain in SITE_SCRAPERS:
        return SITE_SCRAPERS[domain]
    if domain in SCRAPERS or f"www.{domain}" in SCRAPERS:
        return scrape_with_library
    return None


def extract_with_site_scraper(html: str, url: str) -> ExtractionCandidate | None:
    """Run the scraper registered for the URL's domain, if any."""
    scraper = get_site_scraper(url)
    if scraper is None:
        return None
    logger.info(f"Using site-specific scraper {scraper.__name__} for {extract_domain(url)}")
    return scraper(html, url)


def _texts(soup: BeautifulSoup, selector: str) -> list[str]:
    return [t for t in (clean_text(el.get_text(" ")) for el in soup.select(selector)) if t]


# =============================================================================
# Hand-tuned sites
# =============================================================================


@register_site("allrecipes.com")
def scrape_allrecipes(html: str, url: str) -> ExtractionCandidate | None:
    """AllRecipes, current layout with the legacy one as fallback."""
    soup = BeautifulSoup(html, "html.parser")

    title_el = soup.select_one("h1.article-heading, .recipe-summary__h1")
    ingredient_lines = _texts(
        soup, ".mm-recipes-structured-ingredients__list-item, .recipe-ingred_txt"
    )
    step_texts = _texts(
        soup, ".mm-recipes-steps__content li > p, .recipe-directions__list--item"
    )
    image_el = soup.select_one(".primary-image__image, .lead-media img")

    if not ingredient_lines and not step_texts:
        return None

    return ExtractionCandidate(
        source_url=url,
        title=clean_text(title_el.get_text(" ")) if title_el else None,
        image=extract_image_url(image_el.get("src") or image_el.get("data-src")) if image_el else None,
        source_name="AllRecipes",
        ingredients=[parse_ingredient(line) for line in ingredient_lines],
        instructions=build_steps(step_texts),
    )


@register_site("bongeats.com")
def scrape_bongeats(html: str, url: str) -> ExtractionCandidate | None:
    """Bong Eats renders its whole method as one concatenated block."""
    soup = BeautifulSoup(html, "html.parser")

    title_el = soup.select_one("h1")
    ingredients: list[Ingredient] = [
        parse_ingredient(line)
        for line in _texts(soup, ".recipe-ingredients li, .recipe-ingredients p")
        if len(line) > 2 and not is_navigation_text(line)
    ]

    instructions: list[InstructionStep] = []
    block = soup.select_one(".recipe-process-wrapper, .recipe-process")
    if block is not None:
        instructions = split_large_block(clean_text(block.get_text(" ")))

    if not ingredients and not instructions:
        return None

    return ExtractionCandidate(
        source_url=url,
        title=clean_text(title_el.get_text(" ")) if title_el else None,
        source_name="Bong Eats",
        ingredients=ingredients,
        instructions=instructions,
    )


# =============================================================================
# recipe-scrapers adapter
# =============================================================================


def _safe_call(func):
    """Call a recipe-scrapers accessor, returning None when the field is missing."""
    try:
        return func()
    except Exception as e:
        # recipe-scrapers raises its own exception types per missing field
        logger.debug(f"recipe-scrapers field {getattr(func, '__name__', func)} unavailable: {e}")
        return None


def scrape_with_library(html: str, url: str) -> ExtractionCandidate | None:
    """Use the recipe-scrapers parser for sites it supports."""
    scraper = scrape_html(html, org_url=url, supported_only=True)

    ingredient_lines = _safe_call(scraper.ingredients) or []
    step_texts = _safe_call(scraper.instructions_list) or []
    if not ingredient_lines and not step_texts:
        return None

    cuisine = _safe_call(scraper.cuisine)
    return ExtractionCandidate(
        source_url=url,
        title=clean_text(_safe_call(scraper.title)) or None,
        image=extract_image_url(_safe_call(scraper.image)),
        summary=clean_text(_safe_call(scraper.description)) or None,
        source_name=_safe_call(scraper.site_name) or extract_domain(url),
        ready_in_minutes=parse_duration(_safe_call(scraper.total_time)),
        servings=parse_servings(_safe_call(scraper.yields)),
        ingredients=[parse_ingredient(line) for line in ingredient_lines],
        instructions=build_steps(step_texts),
        cuisines=[c.strip() for c in cuisine.split(",") if c.strip()] if cuisine else [],
        nutrition=parse_nutrition(_nutrients_as_schema(_safe_call(scraper.nutrients))),
    )


def _nutrients_as_schema(nutrients: dict | None) -> dict | None:
    """recipe-scrapers already returns Schema.org keys; drop non-string noise."""
    if not nutrients:
        return None
    return {k: v for k, v in nutrients.items() if isinstance(v, (str, int, float))}
