# app/session/resolver.py
import logging
import uuid
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Callable

import anyio
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.exceptions import ProfileLookupError, ProfileWriteError
from app.database import session_scope
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.session.models import AppUser, Principal
from app.session.roles import resolve_role

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]

DEFAULT_DISPLAY_NAME = "Usuario"


def build_app_user(principal: Principal, profile: Profile) -> AppUser:
    """
    Merge a principal with its profile row.

    Fallbacks:
      - nombre: profile -> user_metadata["full_name"] -> "Usuario"
      - foto_perfil: profile -> user_metadata["avatar_url"] -> None
      - email: principal -> profile
      - habilitado: only a literal True counts as approved
    """
    metadata = principal.user_metadata or {}
    return AppUser(
        id=principal.id,
        email=principal.email or profile.email,
        nombre=profile.nombre or metadata.get("full_name") or DEFAULT_DISPLAY_NAME,
        role=resolve_role(profile.rol),
        habilitado=profile.habilitado is True,
        foto_perfil=profile.foto_perfil or metadata.get("avatar_url") or None,
        fecha_registro=profile.fecha_registro,
        principal=principal,
    )


class ProfileResolver:
    """
    Loads and writes profile rows for the session core.

    The repository is synchronous (SQLModel), so every call runs in a
    worker thread and the event loop only awaits the result.
    """

    def __init__(
        self,
        repo: ProfileRepository | None = None,
        session_factory: SessionFactory = session_scope,
    ):
        self.repo = repo or ProfileRepository()
        self._session_factory = session_factory

    # ----- async API -----

    async def fetch_profile(self, principal_id: str) -> Profile | None:
        """
        Profile row for a principal id.

        Returns:
            None if the principal has no profile.

        Raises:
            ProfileLookupError: malformed id or database failure.
        """
        return await anyio.to_thread.run_sync(self._load, principal_id)

    async def resolve(self, principal: Principal) -> AppUser | None:
        """AppUser for a principal, or None when the profile is missing."""
        profile = await self.fetch_profile(principal.id)
        if profile is None:
            return None
        return build_app_user(principal, profile)

    async def create_profile(
        self,
        principal_id: str,
        nombre: str,
        email: str,
        *,
        rol: str,
        habilitado: bool,
        foto_perfil: str | None,
        fecha_registro: datetime,
    ) -> Profile:
        """
        Insert the profile row for a newly registered principal.

        Raises:
            ProfileWriteError: if the insert fails.
        """
        profile = Profile(
            id=self._parse_id(principal_id, ProfileWriteError),
            nombre=nombre,
            email=email,
            rol=rol,
            habilitado=habilitado,
            foto_perfil=foto_perfil,
            fecha_registro=fecha_registro,
        )
        return await anyio.to_thread.run_sync(self._insert, profile)

    # ----- worker-thread bodies -----

    @staticmethod
    def _parse_id(principal_id: str, error: type[ProfileLookupError] | type[ProfileWriteError]) -> uuid.UUID:
        try:
            return uuid.UUID(str(principal_id))
        except ValueError as exc:
            raise error(f"Identificador de usuario inválido: {principal_id}") from exc

    def _load(self, principal_id: str) -> Profile | None:
        profile_id = self._parse_id(principal_id, ProfileLookupError)
        try:
            with self._session_factory() as session:
                return self.repo.get_by_id(session, profile_id)
        except SQLAlchemyError as exc:
            logger.error("Profile lookup failed for %s: %s", principal_id, exc, extra={"principal_id": principal_id})
            raise ProfileLookupError() from exc

    def _insert(self, profile: Profile) -> Profile:
        try:
            with self._session_factory() as session:
                return self.repo.create(session, profile)
        except SQLAlchemyError as exc:
            logger.error("Profile insert failed for %s: %s", profile.id, exc, extra={"principal_id": str(profile.id)})
            raise ProfileWriteError(f"Error al crear el perfil: {exc.__class__.__name__}") from exc
