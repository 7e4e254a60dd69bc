"""
Scrape job and recipe storage.

ScrapeStore is the single owner of job state. All job mutations go through
its methods; claim() and reclaim() are the only ways into "processing" and
are atomic in every implementation, so concurrent submissions for the same
URL can never launch two extractions.

Implementations:
- InMemoryScrapeStore: process-local dicts guarded by an asyncio.Lock
- SupabaseScrapeStore: scrape_jobs/recipes tables, claims through the
  claim_scrape_job/reclaim_scrape_job SQL functions
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from recipe_harvest.config import Settings, get_settings
from recipe_harvest.db.client import get_client
from recipe_harvest.recipe_import.errors import PersistenceError

logger = logging.getLogger(__name__)

JOBS_TABLE = "scrape_jobs"
RECIPES_TABLE = "recipes"


class JobStatus(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class ScrapeJob:
    """One extraction attempt history for a URL."""

    id: str
    url: str
    status: JobStatus
    retry_count: int = 0
    error_message: str | None = None
    recipe_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ScrapeJob":
        return cls(
            id=str(row["id"]),
            url=row["url"],
            status=JobStatus(row["status"]),
            retry_count=row.get("retry_count") or 0,
            error_message=row.get("error_message"),
            recipe_id=str(row["recipe_id"]) if row.get("recipe_id") else None,
            created_at=_parse_timestamp(row["created_at"]) if row.get("created_at") else None,
            updated_at=_parse_timestamp(row["updated_at"]) if row.get("updated_at") else None,
        )


class ScrapeStore(Protocol):
    async def get_job(self, job_id: str) -> ScrapeJob | None: ...

    async def get_job_by_url(self, url: str) -> ScrapeJob | None: ...

    async def claim(self, url: str) -> tuple[ScrapeJob, bool]:
        """
        Move the job for url into processing, creating it if needed.

        Returns (job, claimed). claimed is False when the job was already
        processing; the returned job is then the running one, untouched.
        """
        ...

    async def reclaim(self, job_id: str) -> ScrapeJob | None:
        """Move a finished job back into processing; None if it is processing."""
        ...

    async def mark_success(self, job_id: str, recipe_id: str) -> None: ...

    async def mark_failed(self, job_id: str, message: str) -> None: ...

    async def list_jobs(
        self, offset: int, limit: int, status: JobStatus | None = None
    ) -> tuple[list[ScrapeJob], int]: ...

    async def create_recipe(self, record: dict[str, Any]) -> str: ...

    async def get_recipe(self, recipe_id: str) -> dict[str, Any] | None: ...


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryScrapeStore:
    """Process-local store used for development and tests."""

    def __init__(self):
        self._jobs: dict[str, ScrapeJob] = {}
        self._ids_by_url: dict[str, str] = {}
        self._recipes: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get_job(self, job_id: str) -> ScrapeJob | None:
        return self._jobs.get(job_id)

    async def get_job_by_url(self, url: str) -> ScrapeJob | None:
        job_id = self._ids_by_url.get(url)
        return self._jobs.get(job_id) if job_id else None

    async def claim(self, url: str) -> tuple[ScrapeJob, bool]:
        async with self._lock:
            job = await self.get_job_by_url(url)
            if job is None:
                now = _utc_now()
                job = ScrapeJob(
                    id=str(uuid.uuid4()),
                    url=url,
                    status=JobStatus.PROCESSING,
                    created_at=now,
                    updated_at=now,
                )
                self._jobs[job.id] = job
                self._ids_by_url[url] = job.id
                return job, True

            if job.status == JobStatus.PROCESSING:
                return job, False

            self._restart(job)
            return job, True

    async def reclaim(self, job_id: str) -> ScrapeJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status == JobStatus.PROCESSING:
                return None
            self._restart(job)
            return job

    def _restart(self, job: ScrapeJob) -> None:
        job.status = JobStatus.PROCESSING
        job.retry_count += 1
        job.error_message = None
        job.updated_at = _utc_now()

    async def mark_success(self, job_id: str, recipe_id: str) -> None:
        job = self._require(job_id)
        job.status = JobStatus.SUCCESS
        job.recipe_id = recipe_id
        job.error_message = None
        job.updated_at = _utc_now()

    async def mark_failed(self, job_id: str, message: str) -> None:
        job = self._require(job_id)
        job.status = JobStatus.FAILED
        job.error_message = message
        job.updated_at = _utc_now()

    def _require(self, job_id: str) -> ScrapeJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise PersistenceError(f"Unknown scrape job {job_id}")
        return job

    async def list_jobs(
        self, offset: int, limit: int, status: JobStatus | None = None
    ) -> tuple[list[ScrapeJob], int]:
        # Reversed insertion order keeps ties newest first
        jobs = [j for j in reversed(self._jobs.values()) if status is None or j.status == status]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[offset : offset + limit], len(jobs)

    async def create_recipe(self, record: dict[str, Any]) -> str:
        recipe_id = str(uuid.uuid4())
        self._recipes[recipe_id] = {"id": recipe_id, **record, "created_at": _utc_now().isoformat()}
        return recipe_id

    async def get_recipe(self, recipe_id: str) -> dict[str, Any] | None:
        return self._recipes.get(recipe_id)


# =============================================================================
# Supabase store
# =============================================================================


class SupabaseScrapeStore:
    """Store backed by the scrape_jobs and recipes tables."""

    def __init__(self, client=None):
        self.client = client or get_client()

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Supabase {action} failed: {e}")
            raise PersistenceError(f"Failed to {action}") from e

    async def get_job(self, job_id: str) -> ScrapeJob | None:
        result = self._execute(
            self.client.table(JOBS_TABLE).select("*").eq("id", job_id).limit(1),
            "load scrape job",
        )
        return ScrapeJob.from_row(result.data[0]) if result.data else None

    async def get_job_by_url(self, url: str) -> ScrapeJob | None:
        result = self._execute(
            self.client.table(JOBS_TABLE).select("*").eq("url", url).limit(1),
            "load scrape job",
        )
        return ScrapeJob.from_row(result.data[0]) if result.data else None

    async def claim(self, url: str) -> tuple[ScrapeJob, bool]:
        result = self._execute(
            self.client.rpc("claim_scrape_job", {"p_url": url}),
            "claim scrape job",
        )
        payload = result.data
        return ScrapeJob.from_row(payload["job"]), bool(payload["claimed"])

    async def reclaim(self, job_id: str) -> ScrapeJob | None:
        result = self._execute(
            self.client.rpc("reclaim_scrape_job", {"p_job_id": job_id}),
            "reclaim scrape job",
        )
        return ScrapeJob.from_row(result.data) if result.data else None

    async def mark_success(self, job_id: str, recipe_id: str) -> None:
        self._execute(
            self.client.table(JOBS_TABLE)
            .update(
                {
                    "status": JobStatus.SUCCESS.value,
                    "recipe_id": recipe_id,
                    "error_message": None,
                    "updated_at": _utc_now().isoformat(),
                }
            )
            .eq("id", job_id),
            "mark scrape job successful",
        )

    async def mark_failed(self, job_id: str, message: str) -> None:
        self._execute(
            self.client.table(JOBS_TABLE)
            .update(
                {
                    "status": JobStatus.FAILED.value,
                    "error_message": message,
                    "updated_at": _utc_now().isoformat(),
                }
            )
            .eq("id", job_id),
            "mark scrape job failed",
        )

    async def list_jobs(
        self, offset: int, limit: int, status: JobStatus | None = None
    ) -> tuple[list[ScrapeJob], int]:
        query = self.client.table(JOBS_TABLE).select("*", count="exact")
        if status is not None:
            query = query.eq("status", status.value)
        result = self._execute(
            query.order("created_at", desc=True).range(offset, offset + limit - 1),
            "list scrape jobs",
        )
        jobs = [ScrapeJob.from_row(row) for row in result.data or []]
        return jobs, result.count or 0

    async def create_recipe(self, record: dict[str, Any]) -> str:
        result = self._execute(
            self.client.table(RECIPES_TABLE).insert(record),
            "save recipe",
        )
        if not result.data:
            raise PersistenceError("Failed to save recipe")
        return str(result.data[0]["id"])

    async def get_recipe(self, recipe_id: str) -> dict[str, Any] | None:
        result = self._execute(
            self.client.table(RECIPES_TABLE).select("*").eq("id", recipe_id).limit(1),
            "load recipe",
        )
        return result.data[0] if result.data else None


def get_store(settings: Settings | None = None) -> ScrapeStore:
    """Build the store selected by settings.storage_backend."""
    settings = settings or get_settings()
    if settings.storage_backend == "supabase":
        return SupabaseScrapeStore()
    return InMemoryScrapeStore()
