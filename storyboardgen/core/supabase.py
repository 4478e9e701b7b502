"""
Supabase Client Factory

The service uses the synchronous supabase-py client; store adapters run
its calls off the event loop.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional

from .config import settings
from .logging import get_logger

logger = get_logger("core.supabase")


@lru_cache()
def get_supabase_client() -> Client:
    """Get Supabase client with anon key (for token validation)."""
    return create_client(settings.supabase_url, settings.supabase_anon_key)


@lru_cache()
def get_supabase_admin() -> Optional[Client]:
    """Get Supabase client with service key (for ledger, storage and webhook writes)."""
    if not settings.supabase_service_key:
        logger.warning("No service key configured - falling back to anon client")
        return None
    return create_client(settings.supabase_url, settings.supabase_service_key)


def get_service_client() -> Client:
    """Service-role client when configured, anon client otherwise."""
    return get_supabase_admin() or get_supabase_client()
