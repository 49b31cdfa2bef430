# app/core/browser_session.py
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from app.core.config import get_settings
from app.session.identity import SupabaseIdentityService
from app.session.navigation import BrowserNavigator
from app.session.provider import AuthProvider
from app.session.registry import ProviderRegistry
from app.session.resolver import ProfileResolver


async def build_auth_provider() -> AuthProvider:
    """Production factory: a Supabase-backed provider for one browser."""
    settings = get_settings()
    identity = await SupabaseIdentityService.connect()
    return AuthProvider(
        identity,
        ProfileResolver(),
        site_url=settings.SITE_URL,
        resolve_timeout=settings.SESSION_RESOLVE_TIMEOUT_SECONDS,
    )


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Process-wide registry of browser sessions (overridable in tests)."""
    settings = get_settings()
    return ProviderRegistry(build_auth_provider, idle_seconds=settings.SESSION_IDLE_MINUTES * 60)


@dataclass
class BrowserSession:
    sid: str
    provider: AuthProvider
    is_new: bool


async def get_browser_session(
    request: Request,
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> BrowserSession:
    """
    FastAPI dependency: the auth provider of the calling browser.

    Mounts a new provider when the cookie is missing or unknown. Opens
    the request's redirect slot first, so navigation pushed while this
    request is handled (mount included) is only seen by this request.
    """
    BrowserNavigator.begin_request()
    sid = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    new_sid, provider = await registry.get_or_mount(sid)
    return BrowserSession(sid=new_sid, provider=provider, is_new=new_sid != sid)


def with_session_cookie(browser: BrowserSession, response: Response) -> Response:
    """Attach the browser session cookie when it was just issued."""
    if browser.is_new:
        settings = get_settings()
        response.set_cookie(
            settings.SESSION_COOKIE_NAME,
            browser.sid,
            max_age=settings.SESSION_IDLE_MINUTES * 60,
            httponly=True,
            samesite="lax",
            secure=settings.SITE_URL.startswith("https://"),
        )
    return response


def redirect_to(browser: BrowserSession, location: str) -> Response:
    return with_session_cookie(browser, RedirectResponse(location, status_code=303))


def render(browser: BrowserSession, content: dict, status_code: int = 200) -> Response:
    return with_session_cookie(browser, JSONResponse(content, status_code=status_code))
