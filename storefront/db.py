"""
Database Module - Supabase client

Provides a singleton async Supabase client built with the anon key, used
for profile rows, the remote cart mirror, product reads and the local
auth session cache.
"""

from typing import Optional

from supabase._async.client import AsyncClient, create_client as acreate_client

from storefront.config import Settings, get_settings, require_supabase_config

_async_supabase_client: Optional[AsyncClient] = None


async def get_supabase(settings: Optional[Settings] = None) -> AsyncClient:
    """
    Get async Supabase client (singleton).

    Raises:
        ConfigurationError: SUPABASE_URL / SUPABASE_ANON_KEY missing or malformed
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        url, key = require_supabase_config(settings or get_settings())
        _async_supabase_client = await acreate_client(url, key)

    return _async_supabase_client


def reset_supabase() -> None:
    """Drop the cached client (tests, settings reload)."""
    global _async_supabase_client
    _async_supabase_client = None
