"""Exceptions raised by the extraction engine and job orchestration."""


class RecipeHarvestError(Exception):
    """Base class for all recipe_harvest errors."""


class FetchError(RecipeHarvestError):
    """Page could not be fetched, timed out, or is an error/interstitial page."""


class ParseError(RecipeHarvestError):
    """A structured-data block could not be decoded."""


class NoRecipeFound(RecipeHarvestError):
    """Every fetch tier and strategy ran without an accepted candidate."""

    def __init__(self, message: str = "Could not extract recipe data"):
        super().__init__(message)


class PersistenceError(RecipeHarvestError):
    """The job or recipe store rejected an operation."""


class InvalidURLError(RecipeHarvestError):
    """Submitted URL is missing or not http(s)."""


class JobNotFoundError(RecipeHarvestError):
    """No scrape job with the given id."""


class JobConflictError(RecipeHarvestError):
    """Operation not allowed while the job is processing."""


class BulkLimitError(RecipeHarvestError):
    """Too many URLs in a single bulk submission."""
