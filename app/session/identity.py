# app/session/identity.py
import logging
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from supabase import AsyncClient, AuthError

from app.core.exceptions import IdentityError
from app.core.supabase_client import supabase_browser
from app.session.models import AuthSession, Principal

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (event name, session or None). Called synchronously by the identity client.
AuthStateCallback = Callable[[str, AuthSession | None], None]


class IdentityService(Protocol):
    """
    Identity operations the session core relies on.

    Implementations raise IdentityError carrying the remote message.
    """

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]: ...

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> Principal | None: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None: ...

    async def sign_in_with_oauth(self, provider: str, redirect_to: str, query_params: dict[str, str]) -> str: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> AuthSession | None: ...

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None: ...

    async def update_user(self, password: str) -> Principal | None: ...

    async def exchange_code_for_session(self, code: str) -> AuthSession | None: ...


def to_principal(user: Any) -> Principal | None:
    """Convert a Supabase `User` into a Principal."""
    if user is None:
        return None
    return Principal(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
        app_metadata=dict(getattr(user, "app_metadata", None) or {}),
        created_at=getattr(user, "created_at", None),
        updated_at=getattr(user, "updated_at", None),
    )


def to_auth_session(session: Any) -> AuthSession | None:
    """Convert a Supabase `Session` into an AuthSession."""
    if session is None or getattr(session, "user", None) is None:
        return None
    return AuthSession(
        principal=to_principal(session.user),
        access_token=getattr(session, "access_token", None),
        refresh_token=getattr(session, "refresh_token", None),
    )


class SupabaseIdentityService:
    """
    IdentityService over a supabase-py AsyncClient.

    One instance per browser session (see app.session.registry).
    """

    def __init__(self, client: AsyncClient):
        self._client = client

    @classmethod
    async def connect(cls) -> "SupabaseIdentityService":
        return cls(await supabase_browser())

    async def _call(self, action: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except AuthError as exc:
            message = getattr(exc, "message", None) or str(exc)
            logger.info("Identity %s failed: %s", action, message)
            raise IdentityError(message) from exc

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        def relay(event: Any, session: Any) -> None:
            callback(str(event), to_auth_session(session))

        subscription = self._client.auth.on_auth_state_change(relay)
        return subscription.unsubscribe

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> Principal | None:
        response = await self._call(
            "sign_up",
            lambda: self._client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            ),
        )
        return to_principal(response.user)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession | None:
        response = await self._call(
            "sign_in_with_password",
            lambda: self._client.auth.sign_in_with_password({"email": email, "password": password}),
        )
        return to_auth_session(response.session)

    async def sign_in_with_oauth(self, provider: str, redirect_to: str, query_params: dict[str, str]) -> str:
        response = await self._call(
            "sign_in_with_oauth",
            lambda: self._client.auth.sign_in_with_oauth(
                {
                    "provider": provider,
                    "options": {"redirect_to": redirect_to, "query_params": query_params},
                }
            ),
        )
        return response.url

    async def sign_out(self) -> None:
        await self._call("sign_out", lambda: self._client.auth.sign_out())

    async def get_session(self) -> AuthSession | None:
        session = await self._call("get_session", lambda: self._client.auth.get_session())
        return to_auth_session(session)

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._call(
            "reset_password_for_email",
            lambda: self._client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}),
        )

    async def update_user(self, password: str) -> Principal | None:
        response = await self._call(
            "update_user",
            lambda: self._client.auth.update_user({"password": password}),
        )
        return to_principal(response.user)

    async def exchange_code_for_session(self, code: str) -> AuthSession | None:
        response = await self._call(
            "exchange_code_for_session",
            lambda: self._client.auth.exchange_code_for_session({"auth_code": code}),
        )
        return to_auth_session(response.session)
