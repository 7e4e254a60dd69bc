"""Normalization utilities for recipe data."""

import html
import math
import re
from dataclasses import replace
from typing import Any
from urllib.parse import urlparse

from .models import (
    ExtractionCandidate,
    Ingredient,
    InstructionStep,
    Nutrition,
    renumber_steps,
)

DEFAULT_TITLE = "Scraped Recipe"

# "<amount> <unit?> <name>" where amount may be "2", "0.5", "1/2" or "1 1/2"
_INGREDIENT_RE = re.compile(r"^(\d+\s+\d+/\d+|\d+(?:/\d+)?(?:\.\d+)?)\s*([a-zA-Z]+)?\s+(.+)$")

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:\d+(?:\.\d+)?S)?)?$",
    re.IGNORECASE,
)
_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*h(?:ours?|rs?)?(?![a-z])", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*m(?:in(?:ute)?s?)?(?![a-z])", re.IGNORECASE)

_FIRST_INT_RE = re.compile(r"(\d+)")
_FIRST_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
_TAG_RE = re.compile(r"<[^>]+>")

_UNICODE_FRACTIONS = {
    "½": "1/2",
    "⅓": "1/3",
    "⅔": "2/3",
    "¼": "1/4",
    "¾": "3/4",
    "⅛": "1/8",
}

# Schema.org NutritionInformation property -> Nutrition field
NUTRITION_FIELDS = {
    "calories": "calories",
    "proteinContent": "protein",
    "fatContent": "fat",
    "carbohydrateContent": "carbs",
    "fiberContent": "fiber",
    "sugarContent": "sugar",
    "sodiumContent": "sodium",
}


def clean_text(text: Any) -> str:
    """
    Unescape HTML entities, drop inline tags and collapse whitespace.

    Examples:
        "Mix &amp; stir" -> "Mix & stir"
        "<b>Bake</b>   well" -> "Bake well"
    """
    if text is None:
        return ""
    text = html.unescape(str(text))
    text = _TAG_RE.sub(" ", text)
    return " ".join(text.split())


def parse_fraction(value: str) -> float:
    """
    Parse a numeric amount string.

    Examples:
        "1/2" -> 0.5
        "1 1/2" -> 1.5
        "2.5" -> 2.5
        "abc" -> 1.0
    """
    value = value.strip()
    try:
        parts = value.split()
        if len(parts) == 2:
            return float(parts[0]) + parse_fraction(parts[1])
        if "/" in value:
            numerator, denominator = value.split("/", 1)
            if float(denominator) == 0:
                return 1.0
            return float(numerator) / float(denominator)
        return float(value) or 1.0
    except ValueError:
        return 1.0


def parse_ingredient(line: str) -> Ingredient:
    """
    Split an ingredient line into amount, unit and name.

    Lines without a leading amount keep the whole text as the name
    with an amount of 1.

    Examples:
        "1/2 cup sugar" -> Ingredient(name="sugar", amount=0.5, unit="cup")
        "2 eggs" -> Ingredient(name="eggs", amount=2.0)
        "salt to taste" -> Ingredient(name="salt to taste", amount=1.0)
    """
    text = clean_text(line)
    for symbol, fraction in _UNICODE_FRACTIONS.items():
        if text.startswith(symbol):
            text = fraction + text[len(symbol):]
            break

    match = _INGREDIENT_RE.match(text)
    if match:
        return Ingredient(
            name=match.group(3).strip(),
            amount=parse_fraction(match.group(1)),
            unit=match.group(2),
            original_text=clean_text(line),
        )

    return Ingredient(name=text, amount=1.0, original_text=clean_text(line))


def parse_duration(duration: Any) -> int | None:
    """
    Parse a duration to total minutes.

    Examples:
        PT30M -> 30
        PT1H30M -> 90
        P0DT2H -> 120
        "45 minutes" -> 45
        "1 hour 15 mins" -> 75
        "soon" -> None
    """
    if duration is None or duration == "":
        return None

    if isinstance(duration, bool):
        return None

    if isinstance(duration, (int, float)):
        return int(duration) if math.isfinite(duration) and duration > 0 else None

    text = str(duration).strip()

    match = _ISO_DURATION_RE.match(text)
    if match and text.upper() != "P" and text.upper() != "PT":
        days = int(match.group(1) or 0)
        hours = float(match.group(2) or 0)
        minutes = float(match.group(3) or 0)
        total = int(round(days * 24 * 60 + hours * 60 + minutes))
        return total or None

    if text.isdigit():
        return int(text) or None

    return parse_duration_text(text)


def parse_duration_text(text: str | None) -> int | None:
    """Read hour/minute tokens from free text ("1 hr 20 min")."""
    if not text:
        return None

    minutes = 0.0
    hour_match = _HOURS_RE.search(text)
    if hour_match:
        minutes += float(hour_match.group(1)) * 60
    minute_match = _MINUTES_RE.search(text)
    if minute_match:
        minutes += int(minute_match.group(1))

    return int(round(minutes)) or None


def parse_servings(yield_value: Any) -> int | None:
    """
    Parse recipe yield/servings to integer.

    Examples:
        "4 servings" -> 4
        "Serves 6" -> 6
        ["8", "8 slices"] -> 8
        4 -> 4
    """
    if yield_value is None or isinstance(yield_value, bool):
        return None

    if isinstance(yield_value, (int, float)):
        return int(yield_value) if math.isfinite(yield_value) and yield_value > 0 else None

    if isinstance(yield_value, (list, tuple)):
        return parse_servings(yield_value[0]) if yield_value else None

    match = _FIRST_INT_RE.search(str(yield_value))
    if match:
        return int(match.group(1))

    return None


def extract_image_url(image: Any) -> str | None:
    """
    Extract image URL from various formats.

    Handles:
        - Plain URL string
        - Dict with 'url', '@id' or 'contentUrl' field
        - List of images (take first)
    """
    if not image:
        return None

    if isinstance(image, str):
        return image.strip() or None

    if isinstance(image, dict):
        url = image.get("url") or image.get("contentUrl") or image.get("@id")
        if isinstance(url, (str, list, dict)):
            return extract_image_url(url)
        return None

    if isinstance(image, (list, tuple)):
        return extract_image_url(image[0])

    return None


def extract_domain(url: str) -> str:
    """Lower-cased hostname with a leading "www." removed."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        host = ""
    if not host:
        return "unknown"
    return host[4:] if host.startswith("www.") else host


def as_string_list(value: Any, split_commas: bool = False) -> list[str]:
    """
    Coerce a scalar, list or comma-separated string to a list of strings.

    Examples:
        "Italian" -> ["Italian"]
        ["Italian", "French"] -> ["Italian", "French"]
        "quick, easy" (split_commas=True) -> ["quick", "easy"]
    """
    if not value:
        return []

    if isinstance(value, str):
        items = value.split(",") if split_commas else [value]
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, dict):
                item = item.get("name") or item.get("@id") or ""
            items.append(str(item))
    else:
        items = [str(value)]

    result = []
    for item in items:
        text = clean_text(item)
        if text and text not in result:
            result.append(text)
    return result


def extract_instruction_texts(instructions: Any) -> list[str]:
    """
    Extract instruction text from various formats.

    Handles:
        - Plain strings (split by numbered steps or blank lines)
        - List of strings
        - HowToStep dicts with 'text' or 'name'
        - HowToSection dicts with nested 'itemListElement'
    """
    if not instructions:
        return []

    if isinstance(instructions, dict):
        nested = instructions.get("itemListElement")
        if nested:
            return extract_instruction_texts(nested)
        text = clean_text(instructions.get("text") or instructions.get("name"))
        return [text] if text else []

    if isinstance(instructions, list):
        result = []
        for item in instructions:
            result.extend(extract_instruction_texts(item))
        return result

    if isinstance(instructions, str):
        raw = html.unescape(instructions)
        # Try splitting by numbered patterns like "1." or "1)"
        steps = re.split(r"(?:^|\n)\s*\d+[\.\)]\s*", raw)
        steps = [clean_text(s) for s in steps if clean_text(s)]
        if len(steps) > 1:
            return steps

        # Fall back to line breaks
        steps = [clean_text(s) for s in re.split(r"\n+|<br\s*/?>", raw, flags=re.IGNORECASE)]
        steps = [s for s in steps if s]
        return steps

    return []


def extract_ingredient_lines(ingredients: Any) -> list[str]:
    """
    Normalize ingredients to a list of strings.

    Handles:
        - List of strings
        - List of dicts with 'text' or 'name' field
        - A single string
    """
    if not ingredients:
        return []

    if isinstance(ingredients, str):
        ingredients = [ingredients]

    result = []
    for item in ingredients:
        if isinstance(item, dict):
            item = item.get("text") or item.get("name") or ""
        text = clean_text(item)
        if text:
            result.append(text)
    return result


def build_steps(texts: list[str]) -> list[InstructionStep]:
    """Number non-empty step texts 1..N."""
    cleaned = [clean_text(t) for t in texts]
    return [InstructionStep(number=i, text=t) for i, t in enumerate((t for t in cleaned if t), start=1)]


def parse_nutrition_value(value: Any) -> float | None:
    """First decimal number in a nutrition value ("240 kcal" -> 240.0)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _FIRST_NUMBER_RE.search(str(value).replace(",", ""))
    return float(match.group(1)) if match else None


def parse_nutrition(nutrition: Any) -> Nutrition | None:
    """Map a Schema.org NutritionInformation object to Nutrition."""
    if not isinstance(nutrition, dict):
        return None

    values = {
        field_name: parse_nutrition_value(nutrition.get(schema_key))
        for schema_key, field_name in NUTRITION_FIELDS.items()
    }
    parsed = Nutrition(**values)
    return None if parsed.is_empty() else parsed


def normalize_candidate(candidate: ExtractionCandidate, url: str) -> ExtractionCandidate:
    """
    Final shaping of an accepted candidate before it is persisted.

    Fills the default title and source name, pins the source URL to the
    submitted one, drops nameless ingredients and renumbers steps.
    """
    ingredients = [ing for ing in candidate.ingredients if ing.name and ing.name.strip()]
    steps = [step for step in candidate.instructions if step.text and step.text.strip()]

    return replace(
        candidate,
        title=(candidate.title or "").strip() or DEFAULT_TITLE,
        source_url=url,
        source_name=candidate.source_name or extract_domain(url),
        ingredients=ingredients,
        instructions=renumber_steps(steps),
    )
