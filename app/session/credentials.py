# app/session/credentials.py
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from app.core.exceptions import (
    IdentityError,
    ProfileLookupError,
    ProfileWriteError,
    RegistrationError,
    ValidationError,
)
from app.session.identity import IdentityService
from app.session.models import AppUser, Principal
from app.session.navigation import (
    AUTH_CALLBACK_PATH,
    AUTH_ERROR_PATH,
    DASHBOARD_PATH,
    LANDING_PATH,
    PENDING_APPROVAL_PATH,
    RESET_PASSWORD_PATH,
    Navigator,
)
from app.session.resolver import ProfileResolver
from app.session.roles import DEFAULT_ROLE, landing_destination
from app.session.store import SessionStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PLACEHOLDER_AVATAR = "https://i.pravatar.cc/150?u={id}"
OAUTH_PROVIDER = "google"
OAUTH_QUERY_PARAMS = {"access_type": "offline", "prompt": "consent"}


def auth_error_location(message: str) -> str:
    return f"{AUTH_ERROR_PATH}?message={quote(message)}"


class CredentialService:
    """
    User-initiated auth operations for one browser.

    Writes go through the same SessionStore as the listener, under their
    own generation tokens. Remote errors are raised as IdentityError with
    the remote message unchanged.
    """

    def __init__(
        self,
        identity: IdentityService,
        resolver: ProfileResolver,
        store: SessionStore,
        navigator: Navigator,
        site_url: str,
    ):
        self.identity = identity
        self.resolver = resolver
        self.store = store
        self.navigator = navigator
        self.site_url = site_url.rstrip("/")

    # ----- sign in / sign up -----

    async def login(self, email: str, password: str) -> AppUser | None:
        """
        Password sign-in, then load the profile and route the user.

        Destinations:
          - approved or Barbero        -> /dashboard
          - otherwise                  -> /pending-approval
          - no session / no profile    -> /auth/error?message=...

        Returns:
            The published AppUser, or None when the user was sent to the
            error page.

        Raises:
            IdentityError: sign-in rejected (remote message unchanged).
        """
        await self.identity.sign_in_with_password(email, password)

        token = self.store.begin()
        try:
            session = await self.identity.get_session()
        except IdentityError:
            self.store.settle(token)
            raise
        if session is None:
            self.store.settle(token)
            self.navigator.push(auth_error_location("No hay sesión activa"))
            return None

        try:
            user = await self.resolver.resolve(session.principal)
        except ProfileLookupError as exc:
            logger.error("Profile lookup failed after login for %s: %s", session.principal.id, exc.message)
            self.store.settle(token)
            self.navigator.push(auth_error_location(exc.message))
            return None

        if user is None:
            logger.warning(
                "Login for principal %s without a profile",
                session.principal.id,
                extra={"principal_id": session.principal.id},
            )
            self.store.settle(token)
            self.navigator.push(auth_error_location("Perfil no encontrado"))
            return None

        if not self.store.publish(token, user):
            # A newer auth event already owns the session; it routes the user.
            return self.store.user

        self.navigator.push(landing_destination(user.habilitado, user.role))
        return user

    async def register(self, nombre: str, email: str, password: str) -> Principal:
        """
        Sign up, then create the profile row (Estudiante, not approved).

        If sign-up fails nothing is written. If the profile insert fails the
        principal is left without a profile: the id is logged for manual
        reconciliation and RegistrationError is raised. The browser client
        cannot delete principals, so there is no rollback.

        Raises:
            IdentityError: sign-up rejected.
            RegistrationError: principal created, profile not.
        """
        principal = await self.identity.sign_up(email, password, {"full_name": nombre})
        if principal is None:
            raise RegistrationError("No se pudo crear el usuario")

        try:
            await self.resolver.create_profile(
                principal.id,
                nombre,
                email,
                rol=DEFAULT_ROLE,
                habilitado=False,
                foto_perfil=PLACEHOLDER_AVATAR.format(id=principal.id),
                fecha_registro=datetime.now(timezone.utc),
            )
        except ProfileWriteError as exc:
            logger.error(
                "Principal %s (%s) registered without profile; needs reconciliation",
                principal.id,
                email,
                extra={"principal_id": principal.id},
            )
            raise RegistrationError(f"Error al crear el perfil: {exc.message}") from exc

        self.navigator.push(PENDING_APPROVAL_PATH)
        return principal

    async def login_with_google(self) -> str:
        """
        Start the Google OAuth flow.

        Returns the provider URL the browser must be sent to. The session
        is only established later, by the auth event that follows the
        callback.
        """
        return await self.identity.sign_in_with_oauth(
            OAUTH_PROVIDER,
            redirect_to=f"{self.site_url}{AUTH_CALLBACK_PATH}",
            query_params=dict(OAUTH_QUERY_PARAMS),
        )

    async def complete_federated_login(self, code: str) -> bool:
        """Exchange the OAuth/recovery code; True if a session came back."""
        session = await self.identity.exchange_code_for_session(code)
        return session is not None

    async def logout(self) -> None:
        """Remote sign-out, local reset to anonymous, back to "/"."""
        try:
            await self.identity.sign_out()
        except IdentityError as exc:
            logger.warning("Remote sign-out failed, clearing local session anyway: %s", exc.message)

        self.store.clear(self.store.begin())
        self.navigator.push(LANDING_PATH)

    # ----- password reset -----

    async def request_password_reset(self, email: str) -> None:
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email requerido")
        await self.identity.reset_password_for_email(email, redirect_to=f"{self.site_url}{RESET_PASSWORD_PATH}")

    async def complete_password_reset(self, password: str, confirm: str | None = None) -> None:
        """
        Set a new password for the recovery session opened by the email link.

        Raises:
            ValidationError: no recovery session, too short, or mismatch.
            IdentityError: remote update rejected.
        """
        if await self.identity.get_session() is None:
            raise ValidationError("Abre el enlace desde el correo nuevamente para restablecer tu contraseña.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")
        if confirm is not None and password != confirm:
            raise ValidationError("Las contraseñas no coinciden")

        await self.identity.update_user(password=password)
        self.navigator.push(DASHBOARD_PATH)

    # ----- local profile sync -----

    def update_user_profile(self, patch: dict[str, Any]) -> AppUser | None:
        """
        Apply a shallow patch to the in-memory AppUser right away.

        Does not write the profile row: callers persist first, then call
        this so the UI reflects the change without a reload.

        Raises:
            ValidationError: the patch names a field that cannot be patched.
        """
        try:
            return self.store.merge(patch)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
