"""Tests for the scraping API endpoints."""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from recipe_harvest.db.store import InMemoryScrapeStore
from recipe_harvest.web.app import create_app
from recipe_harvest.web.jobs import ScrapeJobService


URL = "https://example.com/lemon-cake"


@pytest.fixture
def store() -> InMemoryScrapeStore:
    return InMemoryScrapeStore()


@pytest.fixture
def client(store, settings, html_transport, recipe_page_html):
    service = ScrapeJobService(store=store, settings=settings, transport=html_transport(recipe_page_html))
    with TestClient(create_app(service)) as test_client:
        yield test_client


def _wait_for_job(client: TestClient, job_id: str, attempts: int = 100) -> dict:
    for _ in range(attempts):
        body = client.get(f"/api/scraping/status/{job_id}").json()
        if body["status"] != "processing":
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} still processing")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestScrapeEndpoint:

    @pytest.mark.parametrize(
        "payload",
        [{}, {"url": None}, {"url": 42}, {"url": ""}, {"url": "ftp://example.com/cake"}],
    )
    def test_bad_url_is_400(self, client, payload):
        response = client.post("/api/scraping/scrape", json=payload)
        assert response.status_code == 400

    def test_missing_url_message(self, client):
        response = client.post("/api/scraping/scrape", json={})
        assert response.json()["detail"] == "URL is required"

    def test_submit_poll_and_cache(self, client):
        response = client.post("/api/scraping/scrape", json={"url": URL})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processing"
        assert body["cached"] is False

        status = _wait_for_job(client, body["job_id"])
        assert status["status"] == "success"
        assert status["recipe"]["title"] == "Lemon Drizzle Cake"
        assert status["retry_count"] == 0

        again = client.post("/api/scraping/scrape", json={"url": URL}).json()
        assert again["status"] == "success"
        assert again["cached"] is True
        assert again["job_id"] == body["job_id"]


class TestStatusAndRetry:

    def test_unknown_job_is_404(self, client):
        assert client.get("/api/scraping/status/missing").status_code == 404
        assert client.post("/api/scraping/retry/missing").status_code == 404

    def test_retry_processing_job_is_409(self, store, settings, html_transport, recipe_page_html):
        job, _ = asyncio.run(store.claim(URL))
        service = ScrapeJobService(store=store, settings=settings, transport=html_transport(recipe_page_html))

        with TestClient(create_app(service)) as client:
            response = client.post(f"/api/scraping/retry/{job.id}")

        assert response.status_code == 409
        assert response.json()["detail"] == "Job is already processing"

    def test_retry_finished_job(self, client):
        job_id = client.post("/api/scraping/scrape", json={"url": URL}).json()["job_id"]
        _wait_for_job(client, job_id)

        response = client.post(f"/api/scraping/retry/{job_id}")
        assert response.status_code == 200
        assert response.json()["status"] == "processing"

        status = _wait_for_job(client, job_id)
        assert status["status"] == "success"
        assert status["retry_count"] == 1


class TestBulkAndHistory:

    def test_bulk_limits(self, client):
        too_many = [f"https://example.com/r{i}" for i in range(11)]
        assert client.post("/api/scraping/bulk-scrape", json={"urls": too_many}).status_code == 400

        empty = client.post("/api/scraping/bulk-scrape", json={"urls": []})
        assert empty.status_code == 400
        assert empty.json()["detail"] == "URLs array is required"

    def test_bulk_accepts_ten_urls(self, client):
        urls = [f"https://example.com/r{i}" for i in range(10)]

        response = client.post("/api/scraping/bulk-scrape", json={"urls": urls})

        assert response.status_code == 200
        assert len(set(response.json()["job_ids"])) == 10

    def test_bulk_submit(self, client):
        response = client.post(
            "/api/scraping/bulk-scrape",
            json={"urls": ["https://example.com/a", 7, "https://example.com/b"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["job_ids"]) == 2
        assert body["message"] == "Started scraping 2 recipes"

    def test_history(self, client):
        for i in range(3):
            job_id = client.post("/api/scraping/scrape", json={"url": f"https://example.com/r{i}"}).json()["job_id"]
            _wait_for_job(client, job_id)

        body = client.get("/api/scraping/history", params={"page": 1, "limit": 2}).json()
        assert body["total_count"] == 3
        assert body["total_pages"] == 2
        assert body["has_next_page"] is True
        assert len(body["jobs"]) == 2

        filtered = client.get("/api/scraping/history", params={"status": "failed"}).json()
        assert filtered["total_count"] == 0

    def test_history_limit_is_capped(self, client):
        assert client.get("/api/scraping/history", params={"limit": 500}).status_code == 422
