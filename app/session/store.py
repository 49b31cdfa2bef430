# app/session/store.py
import logging
from typing import Any, Callable

from app.session.models import AppUser, SessionState
from app.session.roles import resolve_role

logger = logging.getLogger(__name__)

Subscriber = Callable[[SessionState], None]

# Fields a local patch may change. Identity fields are not patchable.
PATCHABLE_FIELDS = frozenset({"nombre", "email", "role", "habilitado", "foto_perfil"})


class SessionStore:
    """
    Holder of one browser's SessionState.

    Writers (the session listener and the credential operations) take a
    generation token with `begin()` before starting asynchronous work and
    hand it back when they write. Only the holder of the newest token may
    write; anything older is dropped, so a slow resolution can never
    overwrite a newer one.

    Must only be used from the event loop thread.
    """

    def __init__(self) -> None:
        self._state = SessionState(user=None, loading=True)
        self._generation = 0
        self._subscribers: list[Subscriber] = []

    # ----- reads -----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> AppUser | None:
        return self._state.user

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def generation(self) -> int:
        return self._generation

    # ----- generation tokens -----

    def begin(self) -> int:
        """Start a new write generation; every older token becomes stale."""
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    # ----- writes -----

    def publish(self, token: int, user: AppUser) -> bool:
        """
        Set the current user and clear `loading`.

        Returns:
            False if the token was superseded (nothing written).
        """
        if not self.is_current(token):
            logger.debug("Discarding stale session write (token=%s, current=%s)", token, self._generation)
            return False
        self._set(SessionState(user=user, loading=False))
        return True

    def clear(self, token: int) -> bool:
        """Reset to anonymous (user=None) and clear `loading`."""
        if not self.is_current(token):
            logger.debug("Discarding stale session clear (token=%s, current=%s)", token, self._generation)
            return False
        self._set(SessionState(user=None, loading=False))
        return True

    def settle(self, token: int) -> None:
        """
        Clear `loading` without touching the user.

        Used when handling an event ended without a write (profile
        missing, lookup failed). A stale token leaves the flag to the
        newer writer.
        """
        if self.is_current(token) and self._state.loading:
            self._set(SessionState(user=self._state.user, loading=False))

    def merge(self, patch: dict[str, Any]) -> AppUser | None:
        """
        Shallow-merge a patch into the current user, in place of a reload.

        Advances the generation so an in-flight resolution that started
        before the patch cannot overwrite it.

        Returns:
            The patched user, or None when nobody is signed in.

        Raises:
            ValueError: if the patch names a field that cannot be patched.
        """
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Campos no editables: {', '.join(sorted(unknown))}")

        current = self._state.user
        if current is None:
            return None

        patch = dict(patch)
        if "role" in patch:
            patch["role"] = resolve_role(patch["role"])
        if "habilitado" in patch:
            patch["habilitado"] = patch["habilitado"] is True

        updated = current.model_copy(update=patch)
        token = self.begin()
        self.publish(token, updated)
        return updated

    # ----- observers -----

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a state observer; returns the unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set(self, state: SessionState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Session subscriber failed")
