"""
Last-resort heuristic extraction.

Used when a page has no recipe markup we recognise. The title comes from
the best-scoring heading; ingredients and instructions are picked out of
free text by keyword and shape rules.
"""

import logging
import re

from bs4 import BeautifulSoup

from .classifier import has_navigation_keywords, is_navigation_text
from .models import ExtractionCandidate, InstructionStep
from .normalizer import clean_text, extract_domain, parse_ingredient

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Recipe"

TITLE_KEYWORDS = ["recipe", "how to make", "easy", "best", "homemade"]
TITLE_NAVIGATION_WORDS = [
    re.compile(rf"\b{word}\b", re.IGNORECASE)
    for word in ("home", "about", "contact", "menu", "subscribe")
]

_UNITS = r"(?:cups?|tbsp|tsp|lbs?|oz|g|kg|ml|l|pounds?|ounces?|tablespoons?|teaspoons?)"
INGREDIENT_PATTERNS = [
    re.compile(rf"^\d+.*\b{_UNITS}\b", re.IGNORECASE),
    re.compile(r"^\d+/\d+"),
    re.compile(rf"\b{_UNITS}\b", re.IGNORECASE),
]

COOKING_VERBS = re.compile(
    r"\b(?:heat|cook|bake|mix|stir|add|combine|place|remove|preheat|season|"
    r"serve|garnish|chop|slice|dice|mince)\b",
    re.IGNORECASE,
)
INSTRUCTION_BLOCKLIST = ("subscribe", "advertisement")

MAX_TITLE_LENGTH = 100
MIN_INGREDIENT_TEXT = 5
MAX_INGREDIENT_TEXT = 200
MIN_INSTRUCTION_TEXT = 20
MAX_INSTRUCTION_TEXT = 500
MAX_INGREDIENTS = 20
MAX_INSTRUCTIONS = 15


def score_title(text: str) -> int:
    """Rank a heading as a likely recipe title."""
    lowered = text.lower()
    score = sum(2 for keyword in TITLE_KEYWORDS if keyword in lowered)
    if 10 < len(text) < 60:
        score += 3
    score -= sum(5 for pattern in TITLE_NAVIGATION_WORDS if pattern.search(text))
    return score


def looks_like_ingredient(text: str) -> bool:
    return len(text) < MAX_INGREDIENT_TEXT and any(p.search(text) for p in INGREDIENT_PATTERNS)


def looks_like_instruction(text: str) -> bool:
    if not MIN_INSTRUCTION_TEXT < len(text) < MAX_INSTRUCTION_TEXT:
        return False
    lowered = text.lower()
    if any(word in lowered for word in INSTRUCTION_BLOCKLIST):
        return False
    return bool(COOKING_VERBS.search(text))


def _best_title(soup: BeautifulSoup) -> str:
    headings = [
        text
        for text in (clean_text(h.get_text(" ")) for h in soup.find_all(["h1", "h2", "h3"]))
        if 0 < len(text) < MAX_TITLE_LENGTH
    ]
    if not headings:
        return ""
    # max() keeps the first of equal scores, i.e. document order
    return max(headings, key=score_title)


def _ingredient_lines(soup: BeautifulSoup) -> list[str]:
    lines: list[str] = []
    for node in soup.find_all(string=True):
        text = clean_text(node)
        if (
            len(text) > MIN_INGREDIENT_TEXT
            and looks_like_ingredient(text)
            and not is_navigation_text(text)
        ):
            lines.append(text)
            if len(lines) >= MAX_INGREDIENTS:
                break
    return lines


def _instruction_texts(soup: BeautifulSoup) -> list[str]:
    texts: list[str] = []
    seen: set[str] = set()
    for element in soup.find_all(["p", "li"]):
        text = clean_text(element.get_text(" "))
        if text in seen or not looks_like_instruction(text) or has_navigation_keywords(text):
            continue
        seen.add(text)
        texts.append(text)
        if len(texts) >= MAX_INSTRUCTIONS:
            break
    return texts


def extract_with_heuristics(html: str, url: str) -> ExtractionCandidate | None:
    """Guess a recipe out of arbitrary page text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    ingredient_lines = _ingredient_lines(soup)
    instruction_texts = _instruction_texts(soup)
    if not ingredient_lines and not instruction_texts:
        return None

    logger.debug(
        f"Heuristics found {len(ingredient_lines)} ingredient and "
        f"{len(instruction_texts)} instruction lines on {url}"
    )
    return ExtractionCandidate(
        source_url=url,
        title=_best_title(soup) or PLACEHOLDER_TITLE,
        source_name=extract_domain(url),
        ingredients=[parse_ingredient(line) for line in ingredient_lines],
        instructions=[
            InstructionStep(number=i, text=text)
            for i, text in enumerate(instruction_texts, start=1)
        ],
    )
