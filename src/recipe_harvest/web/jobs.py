"""
Scrape job lifecycle.

Tracks each URL through processing → success | failed. Single-owner
module: submissions, retries and bulk submissions all go through
ScrapeJobService, which claims the job in the store and hands the
extraction to the background worker.
"""

import logging
import math
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel

from recipe_harvest.config import Settings, get_settings
from recipe_harvest.db.store import JobStatus, ScrapeJob, ScrapeStore, get_store
from recipe_harvest.recipe_import.errors import (
    BulkLimitError,
    InvalidURLError,
    JobConflictError,
    JobNotFoundError,
)
from recipe_harvest.recipe_import.extractor import canonicalize_url
from recipe_harvest.recipe_import.fetcher import BrowserSession
from recipe_harvest.web.background_worker import BackgroundWorker, run_scrape_pipeline

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


# =============================================================================
# Response Models
# =============================================================================


class SubmitResponse(BaseModel):
    """Outcome of submitting one URL."""

    status: JobStatus
    job_id: str
    recipe: dict[str, Any] | None = None
    cached: bool = False


class JobStatusResponse(BaseModel):
    """Current state of a scrape job, as seen by pollers."""

    job_id: str
    status: JobStatus
    url: str
    retry_count: int
    error_message: str | None = None
    recipe: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BulkSubmitResponse(BaseModel):
    status: JobStatus = JobStatus.PROCESSING
    job_ids: list[str]
    message: str


class JobSummary(BaseModel):
    job_id: str
    url: str
    status: JobStatus
    retry_count: int
    error_message: str | None = None
    recipe_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobHistoryPage(BaseModel):
    """One page of scrape history, newest first."""

    jobs: list[JobSummary]
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_previous_page: bool


def _summary(job: ScrapeJob) -> JobSummary:
    return JobSummary(
        job_id=job.id,
        url=job.url,
        status=job.status,
        retry_count=job.retry_count,
        error_message=job.error_message,
        recipe_id=job.recipe_id,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


# =============================================================================
# Service
# =============================================================================


class ScrapeJobService:
    """
    Submission, polling and retry of scrape jobs.

    Usage:
        service = ScrapeJobService()
        response = await service.submit("https://example.com/recipe")
        ...
        await service.aclose()
    """

    def __init__(
        self,
        store: ScrapeStore | None = None,
        settings: Settings | None = None,
        browser: BrowserSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or get_store(self.settings)
        if browser is None and self.settings.browser_enabled:
            browser = BrowserSession(self.settings)
        self.browser = browser
        self.transport = transport
        self.worker = BackgroundWorker(self.settings.max_concurrent_extractions)

    async def submit(self, url: str) -> SubmitResponse:
        """
        Submit a URL for extraction.

        Returns the cached recipe when the URL already succeeded, the
        existing handle when it is processing, and otherwise starts a new
        attempt in the background.

        Raises:
            InvalidURLError: if the URL is not an absolute http(s) URL
        """
        url = canonicalize_url(url)

        existing = await self.store.get_job_by_url(url)
        if existing is not None:
            if existing.status == JobStatus.SUCCESS and existing.recipe_id:
                recipe = await self.store.get_recipe(existing.recipe_id)
                if recipe is not None:
                    logger.info(f"Returning cached recipe for {url} (job {existing.id})")
                    return SubmitResponse(
                        status=JobStatus.SUCCESS,
                        job_id=existing.id,
                        recipe=recipe,
                        cached=True,
                    )
                logger.warning(f"Recipe {existing.recipe_id} for job {existing.id} is gone, re-extracting")

            if existing.status == JobStatus.PROCESSING:
                return SubmitResponse(status=JobStatus.PROCESSING, job_id=existing.id)

        job, claimed = await self.store.claim(url)
        if claimed:
            self._launch(job)
        else:
            logger.info(f"Job {job.id} for {url} is already processing")
        return SubmitResponse(status=JobStatus.PROCESSING, job_id=job.id)

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        """
        Raises:
            JobNotFoundError: if no job has this id
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        recipe = None
        if job.status == JobStatus.SUCCESS and job.recipe_id:
            recipe = await self.store.get_recipe(job.recipe_id)

        return JobStatusResponse(
            job_id=job.id,
            status=job.status,
            url=job.url,
            retry_count=job.retry_count,
            error_message=job.error_message,
            recipe=recipe,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    async def retry(self, job_id: str) -> SubmitResponse:
        """
        Start a new attempt for a finished job.

        Raises:
            JobNotFoundError: if no job has this id
            JobConflictError: if the job is still processing
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        if job.status == JobStatus.PROCESSING:
            raise JobConflictError("Job is already processing")

        reclaimed = await self.store.reclaim(job_id)
        if reclaimed is None:
            # Another retry or submission got there first
            raise JobConflictError("Job is already processing")

        logger.info(f"Retrying job {job_id} (attempt {reclaimed.retry_count + 1})")
        self._launch(reclaimed)
        return SubmitResponse(status=JobStatus.PROCESSING, job_id=reclaimed.id)

    async def submit_bulk(self, urls: list[Any]) -> BulkSubmitResponse:
        """
        Submit several URLs at once.

        Entries that are not strings or not valid URLs are skipped. Job ids
        come back in input order; cached successes contribute their id.

        Raises:
            InvalidURLError: if the list is empty
            BulkLimitError: if more than max_bulk_urls are given
        """
        if not urls:
            raise InvalidURLError("URLs array is required")
        if len(urls) > self.settings.max_bulk_urls:
            raise BulkLimitError(f"Maximum {self.settings.max_bulk_urls} URLs allowed per bulk request")

        job_ids: list[str] = []
        for url in urls:
            if not isinstance(url, str):
                continue
            try:
                response = await self.submit(url)
            except InvalidURLError as e:
                logger.info(f"Skipping bulk entry {url!r}: {e}")
                continue
            job_ids.append(response.job_id)

        return BulkSubmitResponse(
            job_ids=job_ids,
            message=f"Started scraping {len(job_ids)} recipes",
        )

    async def list_jobs(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: JobStatus | None = None,
    ) -> JobHistoryPage:
        """Scrape history, newest first."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        jobs, total = await self.store.list_jobs((page - 1) * limit, limit, status)
        total_pages = math.ceil(total / limit) if total else 0

        return JobHistoryPage(
            jobs=[_summary(job) for job in jobs],
            current_page=page,
            total_pages=total_pages,
            total_count=total,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )

    def _launch(self, job: ScrapeJob) -> None:
        logger.info(f"Launching extraction for job {job.id}: {job.url}")
        self.worker.launch(
            f"scrape-{job.id}",
            run_scrape_pipeline(
                job.id,
                job.url,
                self.store,
                self.settings,
                self.browser,
                transport=self.transport,
            ),
        )

    async def wait_idle(self) -> None:
        """Wait for every in-flight extraction to finish."""
        await self.worker.wait_idle()

    async def aclose(self) -> None:
        """Drain in-flight extractions and release the browser."""
        await self.wait_idle()
        if self.browser is not None:
            await self.browser.close()
