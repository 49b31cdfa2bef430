# app/core/supabase_client.py
from functools import lru_cache
from supabase import AsyncClient, Client, acreate_client, create_client
from supabase.lib.client_options import AsyncClientOptions

from app.core.config import get_settings

CLIENT_INFO = "elstudio-barber-web"


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - reading public buckets
      - storage smoke tests that must behave like the browser

    Note: This client still respects RLS.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - uploading to / removing from storage buckets
      - any operation that needs to bypass RLS

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def service_client(url: str, service_role_key: str) -> Client:
    """Service-role client from explicit credentials (provisioning scripts)."""
    return create_client(url, service_role_key)


async def supabase_browser() -> AsyncClient:
    """
    Create a fresh async client for ONE browser session.

    Not cached: every browser gets its own client so that auth state
    (session, refresh timer, PKCE verifier) is never shared.

      - flow_type="pkce": OAuth and password-recovery links come back
        with a `code` exchanged on /auth/callback and /reset-password
      - session kept in memory only (the client lives in this process)
      - no background refresh timer; get_session() refreshes an expired
        token on demand, and an idle client can be dropped without cleanup
    """
    settings = get_settings()
    options = AsyncClientOptions(
        flow_type="pkce",
        auto_refresh_token=False,
        persist_session=True,
        headers={"X-Client-Info": CLIENT_INFO},
    )
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, options=options)
