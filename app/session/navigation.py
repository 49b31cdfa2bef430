# app/session/navigation.py
from contextvars import ContextVar
from typing import Protocol

from app.session.roles import DASHBOARD_PATH, PENDING_APPROVAL_PATH

LANDING_PATH = "/"
AUTH_ERROR_PATH = "/auth/error"
AUTH_CALLBACK_PATH = "/auth/callback"
RESET_PASSWORD_PATH = "/reset-password"

# Public pages from which a resolved session is forwarded to its destination.
FORWARDING_PATHS = frozenset({LANDING_PATH, PENDING_APPROVAL_PATH})

__all__ = [
    "AUTH_CALLBACK_PATH",
    "AUTH_ERROR_PATH",
    "DASHBOARD_PATH",
    "FORWARDING_PATHS",
    "LANDING_PATH",
    "PENDING_APPROVAL_PATH",
    "RESET_PASSWORD_PATH",
    "BrowserNavigator",
    "Navigator",
]


class Navigator(Protocol):
    """Client-side navigation as seen by the session core."""

    @property
    def current_path(self) -> str: ...

    def push(self, path: str) -> None: ...


class _RedirectSlot:
    """Redirect requested while handling one HTTP request."""

    __slots__ = ("location",)

    def __init__(self) -> None:
        self.location: str | None = None


# Set per request by `BrowserNavigator.begin_request`. Tasks started while
# handling the request (auth event handling) copy the context and share it.
_request_redirect: ContextVar[_RedirectSlot | None] = ContextVar("request_redirect", default=None)


class BrowserNavigator:
    """
    Navigation state of one browser.

    `visit` records the page the browser is on; `push` is an in-app
    navigation requested by the session core. The HTTP layer turns
    pending pushes into redirects with `take_redirect`.

    Inside an HTTP request (after `begin_request`) a pending push belongs
    to that request only, so concurrent requests from the same browser
    never take each other's redirects. Outside a request the navigator
    keeps a single pending push.
    """

    def __init__(self, path: str = LANDING_PATH):
        self._current_path = path
        self.history: list[str] = []
        self._pending: str | None = None

    @property
    def current_path(self) -> str:
        return self._current_path

    @staticmethod
    def begin_request() -> None:
        _request_redirect.set(_RedirectSlot())

    def visit(self, path: str) -> None:
        self._current_path = path
        self._set_pending(None)

    def push(self, path: str) -> None:
        self.history.append(path)
        self._current_path = path.split("?", 1)[0]
        self._set_pending(path)

    def take_redirect(self) -> str | None:
        """The last pushed location since the previous call, if any."""
        slot = _request_redirect.get()
        if slot is not None:
            location, slot.location = slot.location, None
        else:
            location, self._pending = self._pending, None
        return location

    def _set_pending(self, location: str | None) -> None:
        slot = _request_redirect.get()
        if slot is not None:
            slot.location = location
        else:
            self._pending = location
