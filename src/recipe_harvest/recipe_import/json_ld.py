"""JSON-LD/Schema.org structured data extraction."""

import json
import logging
from typing import Any

from bs4 import BeautifulSoup

from .errors import ParseError
from .models import ExtractionCandidate
from .normalizer import (
    as_string_list,
    build_steps,
    clean_text,
    extract_domain,
    extract_image_url,
    extract_ingredient_lines,
    extract_instruction_texts,
    parse_duration,
    parse_ingredient,
    parse_nutrition,
    parse_servings,
)

logger = logging.getLogger(__name__)


def extract_with_json_ld(html: str, url: str) -> ExtractionCandidate | None:
    """
    Build a candidate from the first Schema.org Recipe on the page.

    Every <script type="application/ld+json"> block is decoded on its own;
    a malformed block is logged and skipped.
    """
    soup = BeautifulSoup(html, "html.parser")

    for index, script in enumerate(soup.find_all("script", attrs={"type": "application/ld+json"})):
        try:
            data = parse_json_ld_block(script.string or script.get_text())
        except ParseError as e:
            logger.debug(f"Skipping JSON-LD block {index} on {url}: {e}")
            continue

        recipe = find_recipe(data)
        if recipe:
            return parse_json_ld_recipe(recipe, url)

    return None


def parse_json_ld_block(text: str) -> Any:
    """Decode one JSON-LD block."""
    text = (text or "").strip()
    if not text:
        raise ParseError("empty block")

    # Some CMSs wrap the payload in HTML comments or CDATA markers
    for prefix, suffix in (("<!--", "-->"), ("//<![CDATA[", "//]]>")):
        if text.startswith(prefix) and text.endswith(suffix):
            text = text[len(prefix):-len(suffix)].strip()

    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError as e:
        raise ParseError(str(e)) from e


def _is_recipe_type(item: dict) -> bool:
    item_type = item.get("@type", "")
    if isinstance(item_type, list):
        return "Recipe" in item_type
    return item_type == "Recipe"


def find_recipe(data: Any) -> dict | None:
    """
    Find a Recipe object in decoded JSON-LD.

    Handles a bare object, a top-level array, and @graph collections.
    """
    items = data if isinstance(data, list) else [data]

    for item in items:
        if not isinstance(item, dict):
            continue

        # Direct Recipe type
        if _is_recipe_type(item):
            return item

        # Recipe inside @graph
        graph = item.get("@graph", [])
        if isinstance(graph, dict):
            graph = [graph]
        for graph_item in graph:
            if isinstance(graph_item, dict) and _is_recipe_type(graph_item):
                return graph_item

    return None


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def parse_json_ld_recipe(data: dict, url: str) -> ExtractionCandidate:
    """Map a Schema.org Recipe object onto a candidate."""
    ingredient_lines = extract_ingredient_lines(
        data.get("recipeIngredient") or data.get("ingredients")
    )

    ready_in = None
    for key in ("totalTime", "cookTime", "prepTime"):
        ready_in = parse_duration(data.get(key))
        if ready_in:
            break

    return ExtractionCandidate(
        source_url=url,
        title=clean_text(_first(data.get("name"))) or None,
        image=extract_image_url(data.get("image")),
        summary=clean_text(_first(data.get("description"))) or None,
        source_name=extract_domain(url),
        ready_in_minutes=ready_in,
        servings=parse_servings(data.get("recipeYield")),
        ingredients=[parse_ingredient(line) for line in ingredient_lines],
        instructions=build_steps(extract_instruction_texts(data.get("recipeInstructions"))),
        cuisines=as_string_list(data.get("recipeCuisine")),
        diets=as_string_list(data.get("suitableForDiet")),
        tags=as_string_list(data.get("keywords"), split_commas=True),
        nutrition=parse_nutrition(data.get("nutrition")),
    )
