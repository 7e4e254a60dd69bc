"""API endpoints for submitting and polling scrape jobs."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from recipe_harvest.db.store import JobStatus
from recipe_harvest.recipe_import.errors import (
    BulkLimitError,
    InvalidURLError,
    JobConflictError,
    JobNotFoundError,
)
from recipe_harvest.web.jobs import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    BulkSubmitResponse,
    JobHistoryPage,
    JobStatusResponse,
    ScrapeJobService,
    SubmitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scraping", tags=["scraping"])


# =============================================================================
# Request Models
# =============================================================================


class ScrapeRequest(BaseModel):
    """Request to scrape a single recipe URL."""

    url: Any = None


class BulkScrapeRequest(BaseModel):
    """Request to scrape several URLs. Non-string entries are ignored."""

    urls: list[Any] = []


def get_scrape_service(request: Request) -> ScrapeJobService:
    return request.app.state.scrape_service


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/scrape", response_model=SubmitResponse)
async def scrape_recipe(
    req: ScrapeRequest,
    service: ScrapeJobService = Depends(get_scrape_service),
) -> SubmitResponse:
    """
    Submit a URL for extraction.

    Returns immediately: either the cached recipe or a job id to poll.
    """
    if not isinstance(req.url, str):
        raise HTTPException(status_code=400, detail="URL is required")

    try:
        return await service.submit(req.url)
    except InvalidURLError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_scraping_status(
    job_id: str,
    service: ScrapeJobService = Depends(get_scrape_service),
) -> JobStatusResponse:
    try:
        return await service.get_job_status(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.get("/history", response_model=JobHistoryPage)
async def get_scraping_history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: JobStatus | None = None,
    service: ScrapeJobService = Depends(get_scrape_service),
) -> JobHistoryPage:
    """Scrape history, newest first, optionally filtered by status."""
    return await service.list_jobs(page=page, limit=limit, status=status)


@router.post("/retry/{job_id}", response_model=SubmitResponse)
async def retry_scraping(
    job_id: str,
    service: ScrapeJobService = Depends(get_scrape_service),
) -> SubmitResponse:
    try:
        return await service.retry(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobConflictError:
        raise HTTPException(status_code=409, detail="Job is already processing")


@router.post("/bulk-scrape", response_model=BulkSubmitResponse)
async def bulk_scrape(
    req: BulkScrapeRequest,
    service: ScrapeJobService = Depends(get_scrape_service),
) -> BulkSubmitResponse:
    """Submit up to max_bulk_urls URLs in one call."""
    try:
        return await service.submit_bulk(req.urls)
    except (InvalidURLError, BulkLimitError) as e:
        raise HTTPException(status_code=400, detail=str(e))
