"""Microdata and classic (hRecipe / .recipe) markup extraction."""

import logging
from typing import Any

from bs4 import BeautifulSoup, Tag
from extruct.w3cmicrodata import MicrodataExtractor

from .json_ld import parse_json_ld_recipe
from .models import ExtractionCandidate, Ingredient, InstructionStep
from .normalizer import (
    clean_text,
    extract_domain,
    extract_image_url,
    parse_duration,
    parse_duration_text,
    parse_ingredient,
    parse_servings,
)

logger = logging.getLogger(__name__)

RECIPE_SCOPE_SELECTOR = '[itemscope][itemtype*="Recipe"], .recipe, .hrecipe'

TITLE_SELECTOR = '[itemprop="name"], .recipe-title, .entry-title, h1'
IMAGE_SELECTOR = '[itemprop="image"], .recipe-image img, .wp-post-image'
SUMMARY_SELECTOR = '[itemprop="description"], .recipe-summary, .recipe-description'
INGREDIENT_SELECTOR = (
    '[itemprop="recipeIngredient"], [itemprop="ingredients"], .recipe-ingredient, .ingredient'
)
INSTRUCTION_SELECTOR = (
    '[itemprop="recipeInstructions"], .recipe-instruction, .instruction, .directions li, .method li'
)
TIME_SELECTOR = '[itemprop="totalTime"], .cook-time, .prep-time'
YIELD_SELECTOR = '[itemprop="recipeYield"], .servings, .serves'

MIN_INGREDIENT_LENGTH = 2
MIN_INSTRUCTION_LENGTH = 10


def extract_with_microdata(html: str, url: str) -> ExtractionCandidate | None:
    """
    Build a candidate from inline recipe markup.

    Schema.org microdata items are read first; pages using class-based
    conventions (hRecipe, .recipe) fall back to selector lookups inside
    the first recipe-scoped element.
    """
    candidate = _extract_schema_microdata(html, url)
    if candidate and (candidate.ingredients or candidate.instructions):
        return candidate

    return _extract_classic_markup(html, url)


def _unwrap(value: Any) -> Any:
    """Turn extruct's {"type", "properties"} items into JSON-LD-like dicts."""
    if isinstance(value, list):
        return [_unwrap(v) for v in value]
    if isinstance(value, dict) and "properties" in value:
        item_type = value.get("type", "")
        if isinstance(item_type, list):
            item_type = item_type[0] if item_type else ""
        unwrapped = {k: _unwrap(v) for k, v in value["properties"].items()}
        unwrapped["@type"] = str(item_type).rsplit("/", 1)[-1]
        return unwrapped
    return value


def _find_microdata_recipe(items: list) -> dict | None:
    for item in items:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type", "")
        types = item_type if isinstance(item_type, list) else [item_type]
        if any(str(t).endswith("/Recipe") or t == "Recipe" for t in types):
            return _unwrap(item)
    return None


def _extract_schema_microdata(html: str, url: str) -> ExtractionCandidate | None:
    try:
        items = MicrodataExtractor().extract(html, base_url=url)
    except Exception as e:
        # lxml rejects some documents outright
        logger.warning(f"Microdata parsing failed for {url}: {e}")
        return None

    recipe = _find_microdata_recipe(items)
    if not recipe:
        return None
    return parse_json_ld_recipe(recipe, url)


def _first_text(scope: Tag, selector: str) -> str:
    element = scope.select_one(selector)
    return clean_text(element.get_text(" ")) if element else ""


def _image_from(scope: Tag) -> str | None:
    element = scope.select_one(IMAGE_SELECTOR)
    if element is None:
        return None
    return extract_image_url(element.get("src") or element.get("content") or element.get("href"))


def _time_from(scope: Tag) -> int | None:
    element = scope.select_one(TIME_SELECTOR)
    if element is None:
        return None
    machine_value = element.get("content") or element.get("datetime")
    if machine_value:
        minutes = parse_duration(machine_value)
        if minutes:
            return minutes
    return parse_duration_text(clean_text(element.get_text(" ")))


def _extract_classic_markup(html: str, url: str) -> ExtractionCandidate | None:
    soup = BeautifulSoup(html, "html.parser")
    scope = soup.select_one(RECIPE_SCOPE_SELECTOR)
    if scope is None:
        return None

    ingredients: list[Ingredient] = []
    for element in scope.select(INGREDIENT_SELECTOR):
        text = clean_text(element.get_text(" "))
        if len(text) > MIN_INGREDIENT_LENGTH:
            ingredients.append(parse_ingredient(text))

    instructions: list[InstructionStep] = []
    for element in scope.select(INSTRUCTION_SELECTOR):
        text = clean_text(element.get_text(" "))
        if len(text) > MIN_INSTRUCTION_LENGTH:
            instructions.append(InstructionStep(number=len(instructions) + 1, text=text))

    title = _first_text(scope, TITLE_SELECTOR)
    if not title and not ingredients and not instructions:
        return None

    return ExtractionCandidate(
        source_url=url,
        title=title or None,
        image=_image_from(scope),
        summary=_first_text(scope, SUMMARY_SELECTOR) or None,
        source_name=extract_domain(url),
        ready_in_minutes=_time_from(scope),
        servings=parse_servings(_first_text(scope, YIELD_SELECTOR)),
        ingredients=ingredients,
        instructions=instructions,
    )
