# app/session/listener.py
import asyncio
import logging
from typing import Callable

from app.core.exceptions import IdentityError
from app.session.identity import IdentityService
from app.session.models import AuthSession
from app.session.navigation import FORWARDING_PATHS, Navigator
from app.session.resolver import ProfileResolver
from app.session.roles import landing_destination
from app.session.store import SessionStore

logger = logging.getLogger(__name__)

INITIAL_SESSION = "INITIAL_SESSION"


class SessionListener:
    """
    Keeps a SessionStore in sync with the identity service's auth events.

    Every event takes a generation token and is handled in its own task:
      - no session      -> store cleared (anonymous)
      - session         -> profile resolved and published as AppUser
      - profile missing -> logged, nothing published
      - lookup failure  -> logged, nothing published

    When a user is published while the browser sits on "/" or
    "/pending-approval", it is forwarded to its destination.

    Nothing raised while handling an event escapes to the identity
    client; failures are logged.
    """

    def __init__(
        self,
        identity: IdentityService,
        resolver: ProfileResolver,
        store: SessionStore,
        navigator: Navigator,
    ):
        self.identity = identity
        self.resolver = resolver
        self.store = store
        self.navigator = navigator
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.identity.on_auth_state_change(self._on_auth_state_change)

    def detach(self) -> None:
        """Unsubscribe from the feed and cancel resolutions still running."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()

    def _on_auth_state_change(self, event: str, session: AuthSession | None) -> None:
        try:
            self.dispatch(event, session)
        except Exception:
            logger.exception("Could not schedule handling of auth event %s", event)

    def dispatch(self, event: str, session: AuthSession | None) -> asyncio.Task[None]:
        """Handle an auth event in the background under a fresh generation token."""
        token = self.store.begin()
        task = asyncio.get_running_loop().create_task(self.handle(event, session, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def current_session(self) -> AuthSession | None:
        """
        The identity service's current session.

        None when it cannot be read (revoked or expired refresh token,
        network failure): the browser is then treated as signed out.
        """
        try:
            return await self.identity.get_session()
        except IdentityError as exc:
            logger.warning("Could not read the current session, treating it as signed out: %s", exc.message)
            return None

    async def refresh(self) -> asyncio.Task[None]:
        """Re-read the current session and handle it as an initial-session event."""
        return self.dispatch(INITIAL_SESSION, await self.current_session())

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """
        Wait for in-flight event handling.

        Returns:
            False if handling was still running when the timeout expired.
            Running handlers are never cancelled here.
        """
        pending = {task for task in self._tasks if not task.done()}
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    async def handle(self, event: str, session: AuthSession | None, token: int) -> None:
        try:
            if session is None:
                self.store.clear(token)
                return

            principal = session.principal
            user = await self.resolver.resolve(principal)
            if user is None:
                logger.warning(
                    "No profile for principal %s (event %s); session left unchanged",
                    principal.id,
                    event,
                    extra={"principal_id": principal.id},
                )
                return

            if self.store.publish(token, user):
                self._forward(user.habilitado, user.role)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Failed to handle auth event %s", event)
        finally:
            self.store.settle(token)

    def _forward(self, habilitado: bool, role: str) -> None:
        if self.navigator.current_path in FORWARDING_PATHS:
            destination = landing_destination(habilitado, role)
            if destination != self.navigator.current_path:
                self.navigator.push(destination)
