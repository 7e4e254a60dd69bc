"""Persistence for scrape jobs and extracted recipes."""

from .store import (
    InMemoryScrapeStore,
    JobStatus,
    ScrapeJob,
    ScrapeStore,
    SupabaseScrapeStore,
    get_store,
)

__all__ = [
    "InMemoryScrapeStore",
    "JobStatus",
    "ScrapeJob",
    "ScrapeStore",
    "SupabaseScrapeStore",
    "get_store",
]
