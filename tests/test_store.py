"""Tests for the scrape job stores."""

import asyncio
from unittest.mock import MagicMock

import pytest

from recipe_harvest.config import Settings
from recipe_harvest.db import client
from recipe_harvest.db.store import (
    InMemoryScrapeStore,
    JobStatus,
    ScrapeJob,
    SupabaseScrapeStore,
    get_store,
)
from recipe_harvest.recipe_import.errors import PersistenceError


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


URL = "https://example.com/lemon-cake"

JOB_ROW = {
    "id": "job-1",
    "url": URL,
    "status": "processing",
    "retry_count": 0,
    "error_message": None,
    "recipe_id": None,
    "created_at": "2026-01-05T10:00:00+00:00",
    "updated_at": "2026-01-05T10:00:00+00:00",
}


class TestInMemoryClaim:

    def test_first_claim_creates_job(self):
        store = InMemoryScrapeStore()

        job, claimed = _run(store.claim(URL))

        assert claimed is True
        assert job.status == JobStatus.PROCESSING
        assert job.retry_count == 0
        assert job.created_at is not None

    def test_claim_while_processing_returns_running_job(self):
        async def _test():
            store = InMemoryScrapeStore()
            first, _ = await store.claim(URL)
            second, claimed = await store.claim(URL)
            return first, second, claimed

        first, second, claimed = _run(_test())

        assert claimed is False
        assert second.id == first.id
        assert second.retry_count == 0

    def test_claim_after_failure_restarts(self):
        async def _test():
            store = InMemoryScrapeStore()
            job, _ = await store.claim(URL)
            await store.mark_failed(job.id, "Could not extract recipe data")
            return await store.claim(URL)

        job, claimed = _run(_test())

        assert claimed is True
        assert job.status == JobStatus.PROCESSING
        assert job.retry_count == 1
        assert job.error_message is None

    def test_concurrent_claims_launch_once(self):
        async def _test():
            store = InMemoryScrapeStore()
            return await asyncio.gather(*(store.claim(URL) for _ in range(10)))

        results = _run(_test())

        assert sum(1 for _, claimed in results if claimed) == 1
        assert len({job.id for job, _ in results}) == 1


class TestInMemoryTransitions:

    def test_reclaim(self):
        async def _test():
            store = InMemoryScrapeStore()
            job, _ = await store.claim(URL)
            while_processing = await store.reclaim(job.id)
            await store.mark_failed(job.id, "boom")
            reclaimed = await store.reclaim(job.id)
            missing = await store.reclaim("nope")
            return while_processing, reclaimed, missing

        while_processing, reclaimed, missing = _run(_test())

        assert while_processing is None
        assert reclaimed.retry_count == 1
        assert reclaimed.status == JobStatus.PROCESSING
        assert missing is None

    def test_mark_success_links_recipe(self):
        async def _test():
            store = InMemoryScrapeStore()
            job, _ = await store.claim(URL)
            recipe_id = await store.create_recipe({"title": "Lemon Drizzle Cake"})
            await store.mark_success(job.id, recipe_id)
            return await store.get_job(job.id), await store.get_recipe(recipe_id)

        job, recipe = _run(_test())

        assert job.status == JobStatus.SUCCESS
        assert job.recipe_id == recipe["id"]
        assert recipe["title"] == "Lemon Drizzle Cake"

    def test_unknown_job_raises(self):
        store = InMemoryScrapeStore()
        with pytest.raises(PersistenceError):
            _run(store.mark_failed("nope", "boom"))
        with pytest.raises(PersistenceError):
            _run(store.mark_success("nope", "recipe-1"))

    def test_list_jobs_newest_first_with_filter(self):
        async def _test():
            store = InMemoryScrapeStore()
            ids = []
            for i in range(5):
                job, _ = await store.claim(f"https://example.com/r{i}")
                ids.append(job.id)
            await store.mark_failed(ids[1], "boom")
            page, total = await store.list_jobs(0, 2)
            rest, _ = await store.list_jobs(4, 2)
            failed, failed_total = await store.list_jobs(0, 10, JobStatus.FAILED)
            return ids, page, total, rest, failed, failed_total

        ids, page, total, rest, failed, failed_total = _run(_test())

        assert total == 5
        assert [j.id for j in page] == [ids[4], ids[3]]
        assert [j.id for j in rest] == [ids[0]]
        assert failed_total == 1
        assert failed[0].id == ids[1]


class TestSupabaseStore:

    def test_claim_uses_rpc(self, mock_supabase):
        mock_supabase.rpc.return_value.execute.return_value = MagicMock(
            data={"job": JOB_ROW, "claimed": True}
        )
        store = SupabaseScrapeStore(client=mock_supabase)

        job, claimed = _run(store.claim(URL))

        mock_supabase.rpc.assert_called_once_with("claim_scrape_job", {"p_url": URL})
        assert claimed is True
        assert job.id == "job-1"
        assert job.status == JobStatus.PROCESSING
        assert job.created_at.year == 2026

    def test_reclaim_returns_none_while_processing(self, mock_supabase):
        mock_supabase.rpc.return_value.execute.return_value = MagicMock(data=None)
        store = SupabaseScrapeStore(client=mock_supabase)

        assert _run(store.reclaim("job-1")) is None
        mock_supabase.rpc.assert_called_once_with("reclaim_scrape_job", {"p_job_id": "job-1"})

    def test_list_jobs_with_count(self, mock_supabase):
        mock_table = mock_supabase.table.return_value
        mock_table.execute.return_value = MagicMock(data=[JOB_ROW], count=21)
        store = SupabaseScrapeStore(client=mock_supabase)

        jobs, total = _run(store.list_jobs(20, 20, JobStatus.PROCESSING))

        assert total == 21
        assert jobs[0].url == URL
        mock_table.eq.assert_called_with("status", "processing")
        mock_table.range.assert_called_with(20, 39)

    def test_create_recipe_returns_id(self, mock_supabase):
        mock_supabase.table.return_value.execute.return_value = MagicMock(data=[{"id": "recipe-9"}])
        store = SupabaseScrapeStore(client=mock_supabase)

        assert _run(store.create_recipe({"title": "Soup"})) == "recipe-9"
        mock_supabase.table.assert_called_with("recipes")

    def test_errors_become_persistence_errors(self, mock_supabase):
        mock_supabase.table.return_value.execute.side_effect = RuntimeError("connection reset")
        store = SupabaseScrapeStore(client=mock_supabase)

        with pytest.raises(PersistenceError, match="Failed to save recipe"):
            _run(store.create_recipe({"title": "Soup"}))

    def test_empty_insert_result(self, mock_supabase):
        store = SupabaseScrapeStore(client=mock_supabase)
        with pytest.raises(PersistenceError, match="Failed to save recipe"):
            _run(store.create_recipe({"title": "Soup"}))


class TestStoreSelection:

    def test_memory_backend(self, settings):
        assert isinstance(get_store(settings), InMemoryScrapeStore)

    def test_supabase_backend_needs_credentials(self, monkeypatch):
        settings = Settings(
            storage_backend="supabase",
            supabase_url=None,
            supabase_service_role_key=None,
            _env_file=None,
        )
        monkeypatch.setattr(client, "settings", settings)
        client.reset_client()

        with pytest.raises(PersistenceError, match="HARVEST_SUPABASE_URL"):
            get_store(settings)


def test_job_from_row():
    job = ScrapeJob.from_row({**JOB_ROW, "status": "success", "recipe_id": 42, "retry_count": None})
    assert job.status == JobStatus.SUCCESS
    assert job.recipe_id == "42"
    assert job.retry_count == 0
