"""
Content classification for scraped page text.

Separates recipe content from site chrome: navigation links, cookie
banners, marketing blurbs. Used by the pattern-matching and heuristic
strategies, which read loosely targeted elements and would otherwise
harvest boilerplate.
"""

import logging
import re

from .models import InstructionStep

logger = logging.getLogger(__name__)

# Word-boundary matches only: "about" in "cook for about 30 minutes" is recipe text
NAVIGATION_PATTERNS = [
    re.compile(rf"\b{phrase}\b")
    for phrase in (
        "log in",
        "sign up",
        "menu",
        "home",
        "about us",
        "contact",
        "search",
        "subscribe",
        "newsletter",
        "my account",
        "settings",
        "help",
        "privacy",
        "terms",
        "cookies",
        "accept all cookies",
        "advertisement",
        "follow us",
        "social media",
    )
]

# Marketing blurbs and card subtitles rather than cooking steps
DESCRIPTION_PATTERNS = [
    re.compile(r"^[^.]{10,100}$"),
    re.compile(r"cooked in.*sauce$", re.IGNORECASE),
    re.compile(r"style.*recipe$", re.IGNORECASE),
    re.compile(r"^.*—.*recipe\.?$", re.IGNORECASE),
]

MIN_INSTRUCTION_LENGTH = 15
MAX_BLOCK_LENGTH = 500

# Selector family known to render every step as one concatenated block
LARGE_BLOCK_SELECTOR_MARKER = "recipe-process"
LARGE_BLOCK_THRESHOLD = 1000

_FILLER_RE = re.compile(r"Lorem ipsum dolor.*?(?:Doodh Cha|Filter Coffee|$)", re.DOTALL)
_SERVING_FOOTER_RE = re.compile(r"Serve with.*$", re.DOTALL)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_STEP_STARTER_RE = re.compile(
    r"^(?:Spatchcock|Chop|Next|Place|After|Meanwhile|Heat|Add|Cook|Fish|Drain|Clean|Serve)"
)

MIN_SENTENCE_LENGTH = 20
MIN_STEP_LENGTH = 30


def has_navigation_keywords(text: str) -> bool:
    """True if the text contains a navigation/boilerplate phrase."""
    lowered = text.lower()
    return any(pattern.search(lowered) for pattern in NAVIGATION_PATTERNS)


def is_recipe_description(text: str) -> bool:
    """True for short period-free fragments and stock recipe-card phrasing."""
    stripped = text.strip()
    return any(pattern.search(stripped) for pattern in DESCRIPTION_PATTERNS)


def is_navigation_text(text: str, instruction_context: bool = False) -> bool:
    """
    Decide whether scraped text is site chrome rather than recipe content.

    Instruction context is lenient about length so long legitimate steps
    survive; elsewhere oversized blocks are rejected as well.
    """
    if has_navigation_keywords(text):
        return True
    if instruction_context:
        return is_recipe_description(text)
    return len(text) > MAX_BLOCK_LENGTH


def split_instruction_block(text: str, selector: str) -> list[InstructionStep]:
    """
    Turn one matched instruction element into steps.

    Oversized blocks from the recipe-process selector family are split
    into sentences and regrouped; anything else is a single step.
    """
    if LARGE_BLOCK_SELECTOR_MARKER in selector and len(text) > LARGE_BLOCK_THRESHOLD:
        logger.debug(f"Splitting {len(text)}-char instruction block from {selector!r}")
        return split_large_block(text)

    return [InstructionStep(number=1, text=text)]


def split_large_block(text: str) -> list[InstructionStep]:
    """Split a concatenated method block into numbered steps."""
    method_text = text
    if "Method" in text:
        # Everything before "Method" is the ingredients preamble
        method_text = text[text.index("Method") + len("Method"):]

    method_text = _FILLER_RE.sub("", method_text)
    method_text = _SERVING_FOOTER_RE.sub("", method_text)

    sentences = [
        s.strip()
        for s in _SENTENCE_SPLIT_RE.split(method_text)
        if len(s.strip()) > MIN_SENTENCE_LENGTH and "lorem ipsum" not in s.lower()
    ]

    steps: list[str] = []
    current = ""
    for sentence in sentences:
        if _STEP_STARTER_RE.match(sentence) and current:
            steps.append(current.strip())
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current.strip():
        steps.append(current.strip())

    kept = [step for step in steps if len(step) > MIN_STEP_LENGTH]
    logger.debug(f"Large block produced {len(kept)} steps from {len(sentences)} sentences")
    return [InstructionStep(number=i, text=step) for i, step in enumerate(kept, start=1)]
