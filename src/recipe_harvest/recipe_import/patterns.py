"""
Generic selector-based extraction.

Each field has a priority-ordered list of CSS selectors collected from
common recipe themes and plugins. For every field the first selector that
yields usable content wins. Ingredient and instruction lines go through
the content classifier so navigation and marketing text is not harvested.
"""

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .classifier import is_navigation_text, split_instruction_block
from .models import ExtractionCandidate, Ingredient, InstructionStep, renumber_steps
from .normalizer import (
    clean_text,
    extract_domain,
    parse_duration_text,
    parse_ingredient,
    parse_servings,
)

logger = logging.getLogger(__name__)

TITLE_SELECTORS = [
    "h1.recipe-title",
    "h1.entry-title",
    "h2.recipe-title",
    ".recipe-name",
    ".recipe-header h1",
    ".post-title",
    'h1[class*="title"]',
    'h1[class*="recipe"]',
]

INGREDIENT_SELECTORS = [
    ".ingredients li",
    ".recipe-ingredients li",
    ".ingredient-list li",
    ".ingredients ul li",
    ".recipe-ingredient",
    '[class*="ingredient"]',
    ".wp-block-recipe-card-ingredients li",
    ".recipe-ingredients p",
    ".recipe-ingredients > p",
]

INSTRUCTION_SELECTORS = [
    # Block-rendering themes first so their splitter gets a chance
    ".recipe-process-wrapper .recipe-process",
    ".recipe-process-wrapper p",
    '[class*="recipe-process"]',
    '[class*="process"]',
    ".recipe-process",
    ".process-wrapper p",
    ".recipe-method p",
    # Standard recipe markup
    ".instructions li",
    ".directions li",
    ".method li",
    ".recipe-instructions li",
    ".instructions ol li",
    ".recipe-method li",
    ".wp-block-recipe-card-instructions li",
    "[data-process]",
    ".step",
    ".recipe-step",
    ".cooking-step",
    # Generic, may capture large blocks
    '[class*="instruction"]',
    '[class*="direction"]',
    # Last resort
    'p[class*="recipe"]',
    'div[class*="recipe"] p',
    ".recipe-content p",
    'p[class*="step"]',
    'div[class*="step"]',
    '[class*="preparation"]',
]

IMAGE_SELECTORS = [
    ".recipe-image img",
    ".recipe-photo img",
    ".recipe-img img",
    ".wp-post-image",
    ".attachment-post-thumbnail",
    ".post-thumbnail img",
    'img[class*="recipe"]',
    ".recipe-header img",
    ".recipe-content img",
]

TIME_SELECTORS = [
    ".recipe-time",
    ".cook-time",
    ".prep-time",
    ".total-time",
    '[class*="time"]',
    ".recipe-meta",
    ".recipe-info",
]

SERVING_SELECTORS = [
    ".recipe-servings",
    ".servings",
    ".serves",
    ".yield",
    '[class*="serving"]',
    '[class*="yield"]',
    ".recipe-meta",
]

# Text-scan fallbacks when no metadata element matched
TIME_TEXT_RE = re.compile(r"\b(?:min|mins|minutes|hours?|hrs?)\b", re.IGNORECASE)
SERVING_TEXT_RE = re.compile(r"\b(?:serves|servings|portions)\b", re.IGNORECASE)

ICON_IMAGE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"clock.*\.svg",
        r"icon.*\.svg",
        r"\.svg$",
        r"clock.*\.png",
        r"icon.*\.png",
        r"time.*\.svg",
        r"time.*\.png",
        r"solid\.svg",
        r"regular\.svg",
    )
]

MIN_INGREDIENT_LENGTH = 2
MIN_INGREDIENTS_FOR_SELECTOR = 3
MIN_INSTRUCTION_LENGTH = 15
MAX_META_TEXT_LENGTH = 200


def is_icon_image(src: str) -> bool:
    """True for clock/icon sprites that sit next to recipe metadata."""
    return any(pattern.search(src) for pattern in ICON_IMAGE_PATTERNS)


def find_title(soup: BeautifulSoup) -> str:
    for selector in TITLE_SELECTORS:
        element = soup.select_one(selector)
        if element:
            text = clean_text(element.get_text(" "))
            if text:
                return text
    return ""


def find_ingredients(soup: BeautifulSoup) -> list[Ingredient]:
    fallback: list[Ingredient] = []
    for selector in INGREDIENT_SELECTORS:
        ingredients = [
            parse_ingredient(text)
            for text in (clean_text(el.get_text(" ")) for el in soup.select(selector))
            if len(text) > MIN_INGREDIENT_LENGTH and not is_navigation_text(text)
        ]
        if len(ingredients) >= MIN_INGREDIENTS_FOR_SELECTOR:
            logger.debug(f"Ingredients matched by {selector!r}: {len(ingredients)}")
            return ingredients
        # A selector with one or two hits only wins if nothing better turns up
        if ingredients and not fallback:
            fallback = ingredients
    return fallback


def find_instructions(soup: BeautifulSoup) -> list[InstructionStep]:
    for selector in INSTRUCTION_SELECTORS:
        steps: list[InstructionStep] = []
        for element in soup.select(selector):
            text = clean_text(element.get_text(" "))
            if len(text) > MIN_INSTRUCTION_LENGTH and not is_navigation_text(
                text, instruction_context=True
            ):
                steps.extend(split_instruction_block(text, selector))
        if steps:
            logger.debug(f"Instructions matched by {selector!r}: {len(steps)}")
            return renumber_steps(steps)
    return []


def find_image(soup: BeautifulSoup, url: str) -> str | None:
    for selector in IMAGE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        src = element.get("src") or element.get("data-src")
        if not src:
            continue
        if is_icon_image(src):
            logger.debug(f"Skipped icon image: {src}")
            continue
        return urljoin(url, src)
    return None


def _scan_metadata(soup: BeautifulSoup, selectors: list[str], text_re: re.Pattern, parse) -> int | None:
    for selector in selectors:
        for element in soup.select(selector):
            value = parse(clean_text(element.get_text(" ")))
            if value:
                return value

    # Small leaf-ish elements mentioning the keyword
    for element in soup.find_all(["span", "p", "li", "div", "strong", "time"]):
        text = clean_text(element.get_text(" "))
        if text and len(text) <= MAX_META_TEXT_LENGTH and text_re.search(text):
            value = parse(text)
            if value:
                return value
    return None


def find_ready_in_minutes(soup: BeautifulSoup) -> int | None:
    return _scan_metadata(soup, TIME_SELECTORS, TIME_TEXT_RE, parse_duration_text)


def find_servings(soup: BeautifulSoup) -> int | None:
    return _scan_metadata(soup, SERVING_SELECTORS, SERVING_TEXT_RE, parse_servings)


def extract_with_patterns(html: str, url: str) -> ExtractionCandidate | None:
    """Build a candidate from common recipe-theme selectors."""
    soup = BeautifulSoup(html, "html.parser")

    title = find_title(soup)
    ingredients = find_ingredients(soup)
    instructions = find_instructions(soup)

    if not title and not ingredients and not instructions:
        return None

    return ExtractionCandidate(
        source_url=url,
        title=title or None,
        image=find_image(soup, url),
        source_name=extract_domain(url),
        ready_in_minutes=find_ready_in_minutes(soup),
        servings=find_servings(soup),
        ingredients=ingredients,
        instructions=instructions,
    )
