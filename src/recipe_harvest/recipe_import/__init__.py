"""Recipe extraction engine: fetch a page and turn it into a structured recipe."""

from .errors import (
    FetchError,
    InvalidURLError,
    NoRecipeFound,
    ParseError,
    PersistenceError,
    RecipeHarvestError,
)
from .extractor import canonicalize_url, extract_recipe, is_valid_candidate, validate_url
from .fetcher import BrowserSession, fetch_html
from .models import (
    ExtractionCandidate,
    ExtractionMethod,
    ExtractionResult,
    Ingredient,
    InstructionStep,
    Nutrition,
)
from .sites import SITE_SCRAPERS, register_site

__all__ = [
    "BrowserSession",
    "ExtractionCandidate",
    "ExtractionMethod",
    "ExtractionResult",
    "FetchError",
    "Ingredient",
    "InstructionStep",
    "InvalidURLError",
    "NoRecipeFound",
    "Nutrition",
    "ParseError",
    "PersistenceError",
    "RecipeHarvestError",
    "SITE_SCRAPERS",
    "canonicalize_url",
    "extract_recipe",
    "fetch_html",
    "is_valid_candidate",
    "register_site",
    "validate_url",
]
