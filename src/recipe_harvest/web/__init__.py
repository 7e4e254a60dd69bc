"""HTTP surface: FastAPI app, scrape routes and the job service."""
