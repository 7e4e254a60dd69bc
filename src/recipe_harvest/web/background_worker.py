"""
Background extraction for scrape jobs.

Submissions return as soon as the job row reads "processing"; the actual
fetch and extraction run here as asyncio tasks. BackgroundWorker bounds
how many pipelines run at once; excess work waits for a slot while its
job already reports "processing" to pollers.
"""

import asyncio
import logging
from typing import Coroutine

import httpx

from recipe_harvest.config import Settings
from recipe_harvest.db.store import ScrapeStore
from recipe_harvest.recipe_import.errors import NoRecipeFound, PersistenceError
from recipe_harvest.recipe_import.extractor import extract_recipe
from recipe_harvest.recipe_import.fetcher import BrowserSession

logger = logging.getLogger(__name__)

PERSISTENCE_FAILURE_MESSAGE = "Failed to save recipe"
UNEXPECTED_FAILURE_MESSAGE = "Unexpected error during extraction"


class BackgroundWorker:
    """Fixed-size pool of concurrently running pipelines."""

    def __init__(self, max_concurrent: int):
        self._slots = asyncio.Semaphore(max_concurrent)
        self._tasks: set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def launch(self, name: str, coro: Coroutine) -> asyncio.Task:
        """Schedule coro once a slot frees up; returns immediately."""
        task = asyncio.create_task(self._run(coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine) -> None:
        async with self._slots:
            await coro

    async def wait_idle(self) -> None:
        """Wait until every launched pipeline has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def run_scrape_pipeline(
    job_id: str,
    url: str,
    store: ScrapeStore,
    settings: Settings,
    browser: BrowserSession | None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """
    Extract a recipe for a claimed job and record the outcome.

    Leaves the job in a terminal state: success with a recipe id, or
    failed with a short message. If the store rejects that final update
    the error is logged and the task still ends cleanly.
    """
    try:
        result = await extract_recipe(url, settings, browser=browser, transport=transport)
        if not result.success or result.candidate is None:
            raise NoRecipeFound()

        try:
            recipe_id = await store.create_recipe(result.candidate.to_record())
        except PersistenceError as e:
            logger.error(f"Saving recipe for job {job_id} failed: {e}")
            await _record_failure(store, job_id, PERSISTENCE_FAILURE_MESSAGE)
            return

        await store.mark_success(job_id, recipe_id)
        logger.info(
            f"Job {job_id} succeeded via {result.method.value} "
            f"({result.fetch_tier} tier), recipe {recipe_id}"
        )

    except NoRecipeFound as e:
        logger.info(f"Job {job_id} found no recipe at {url}")
        await _record_failure(store, job_id, str(e))

    except Exception as e:
        logger.exception(f"Background extraction failed for job {job_id}")
        await _record_failure(store, job_id, _short_message(e))


async def _record_failure(store: ScrapeStore, job_id: str, message: str) -> None:
    try:
        await store.mark_failed(job_id, message)
    except Exception:
        # The row stays "processing" until the store is reachable again
        logger.exception(f"Could not mark job {job_id} failed ({message})")


def _short_message(error: Exception) -> str:
    message = str(error).strip().splitlines()[0] if str(error).strip() else ""
    return message[:200] or UNEXPECTED_FAILURE_MESSAGE
