"""Data models for recipe import."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ExtractionMethod(str, Enum):
    """Strategy that produced the accepted candidate."""

    JSON_LD = "json_ld"
    MICRODATA = "microdata"
    PATTERN = "pattern"
    SITE_SPECIFIC = "site_specific"
    HEURISTIC = "heuristic"
    FAILED = "failed"


@dataclass
class Ingredient:
    """One ingredient line split into amount, unit and name."""

    name: str
    amount: float = 1.0
    unit: str | None = None
    original_text: str | None = None


@dataclass
class InstructionStep:
    """A numbered cooking step (numbers start at 1)."""

    number: int
    text: str


@dataclass
class Nutrition:
    """Per-serving nutrition values as plain numbers."""

    calories: float | None = None
    protein: float | None = None
    fat: float | None = None
    carbs: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())


@dataclass
class ExtractionCandidate:
    """Unpersisted recipe produced by a single extraction strategy."""

    source_url: str
    title: str | None = None
    image: str | None = None
    summary: str | None = None
    source_name: str | None = None
    ready_in_minutes: int | None = None
    servings: int | None = None
    ingredients: list[Ingredient] = field(default_factory=list)
    instructions: list[InstructionStep] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    diets: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    nutrition: Nutrition | None = None

    def to_record(self) -> dict[str, Any]:
        """Flatten into the shape handed to the recipe store."""
        return asdict(self)


@dataclass
class ExtractionResult:
    """Result of running the strategy chain against a URL."""

    success: bool
    method: ExtractionMethod
    candidate: ExtractionCandidate | None = None
    error: str | None = None
    fetch_tier: str | None = None


def renumber_steps(steps: list[InstructionStep]) -> list[InstructionStep]:
    """Return steps numbered 1..N in their current order."""
    return [InstructionStep(number=i, text=step.text) for i, step in enumerate(steps, start=1)]
