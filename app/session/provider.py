# app/session/provider.py
import logging
from typing import Any

from app.session.credentials import CredentialService
from app.session.guard import GuardDecision, enforce, evaluate_guard
from app.session.identity import IdentityService
from app.session.listener import INITIAL_SESSION, SessionListener
from app.session.models import AppUser, SessionState
from app.session.navigation import BrowserNavigator
from app.session.resolver import ProfileResolver
from app.session.store import SessionStore

logger = logging.getLogger(__name__)


class AuthProvider:
    """
    Root scope of one browser's authentication state.

    Owns the SessionStore, the listener subscription, the navigator and
    the credential operations. `mount()` subscribes to the identity feed
    and schedules the initial session check; `unmount()` unsubscribes.

    Usage:

        provider = AuthProvider(identity, ProfileResolver(), site_url=...)
        await provider.mount()
        await provider.visit("/dashboard")
        decision = provider.guard()
    """

    def __init__(
        self,
        identity: IdentityService,
        resolver: ProfileResolver,
        *,
        site_url: str,
        resolve_timeout: float | None = None,
    ):
        self.identity = identity
        self.resolve_timeout = resolve_timeout
        self.store = SessionStore()
        self.navigator = BrowserNavigator()
        self.listener = SessionListener(identity, resolver, self.store, self.navigator)
        self.credentials = CredentialService(identity, resolver, self.store, self.navigator, site_url)
        self.mounted = False

    # ----- lifecycle -----

    async def mount(self) -> None:
        if self.mounted:
            return
        self.listener.attach()
        self.listener.dispatch(INITIAL_SESSION, await self.listener.current_session())
        self.mounted = True

    async def unmount(self) -> None:
        self.listener.detach()
        self.mounted = False

    async def __aenter__(self) -> "AuthProvider":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.unmount()

    # ----- state -----

    @property
    def state(self) -> SessionState:
        return self.store.state

    @property
    def user(self) -> AppUser | None:
        return self.store.user

    @property
    def loading(self) -> bool:
        return self.store.loading

    # ----- navigation -----

    async def visit(self, path: str) -> SessionState:
        """
        Record a page visit and re-resolve the session.

        The profile is re-read on every visit, so a change to `habilitado`
        or `rol` is seen on the next page load. Waits for the resolution
        up to `resolve_timeout`; the state is returned either way (still
        loading if the very first check has not finished).
        """
        self.navigator.visit(path)
        await self.listener.refresh()
        await self.settle()
        return self.state

    async def settle(self) -> bool:
        """Wait for pending event handling; False if it is still running."""
        finished = await self.listener.wait_idle(self.resolve_timeout)
        if not finished:
            logger.info("Session resolution still running after %ss", self.resolve_timeout)
        return finished

    def guard(self) -> GuardDecision:
        """Evaluate the dashboard guard and apply it to the navigator."""
        return enforce(evaluate_guard(self.state), self.navigator)

    def take_redirect(self) -> str | None:
        return self.navigator.take_redirect()

    # ----- credential operations -----

    async def login(self, email: str, password: str) -> AppUser | None:
        return await self.credentials.login(email, password)

    async def register(self, nombre: str, email: str, password: str):
        return await self.credentials.register(nombre, email, password)

    async def login_with_google(self) -> str:
        return await self.credentials.login_with_google()

    async def logout(self) -> None:
        await self.credentials.logout()

    def update_user_profile(self, patch: dict[str, Any]) -> AppUser | None:
        return self.credentials.update_user_profile(patch)
