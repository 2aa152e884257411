"""
Database client singletons.

The catalog (products, brands, categories) and the search_analytics table
live in Supabase. This module hands out one shared client per process.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    Returns:
        Client: The Supabase client instance

    Raises:
        SupabaseClientError: If client cannot be created
    """
    try:
        settings = get_settings()
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """Get the Supabase client, returning None if it cannot be created."""
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None

