"""
Recipe Harvest - Supabase Client.

Low-level database access for the supabase storage backend.
"""

from supabase import Client, create_client

from recipe_harvest.config import settings
from recipe_harvest.recipe_import.errors import PersistenceError

# Singleton client instance
_client: Client | None = None


def get_client() -> Client:
    """
    Get the Supabase client.

    Uses the service role key; the scraper writes jobs and recipes on behalf
    of every caller. Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise PersistenceError(
                "HARVEST_SUPABASE_URL and HARVEST_SUPABASE_SERVICE_ROLE_KEY are required "
                "for the supabase storage backend"
            )
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )

    return _client


def reset_client() -> None:
    """Drop the cached client (settings changed, tests)."""
    global _client
    _client = None
