# app/services/user_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.exceptions import NotFoundError, PermissionDeniedError, StorageError
from app.core.storage_utils import BUCKET_PROFILE_PICTURES, SupabaseStorage, generate_filename
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import HabilitadoUpdate, RoleUpdate
from app.services.upload_service import IMAGE_TYPES, MB, IncomingFile, validate_file
from app.session.roles import resolve_role

logger = logging.getLogger(__name__)

MAX_PROFILE_PICTURE_BYTES = 5 * MB


class UserService:
    """
    Business logic for profiles.

    Responsibilities:
      - account approval and role management (Barbero / Administrador)
      - profile picture upload/replace/remove

    Only the profile row is written here. Keeping the caller's in-memory
    session in step is the router's job (update_user_profile).
    """

    def __init__(self, repo: ProfileRepository, storage: SupabaseStorage):
        self.repo = repo
        self.storage = storage

    # ----- Account management -----

    def list_profiles(self, session: Session, skip: int = 0, limit: int = 100) -> list[Profile]:
        """All profiles, newest registration first."""
        return self.repo.list_newest_first(session, skip=skip, limit=limit)

    def get_profile(self, session: Session, profile_id: uuid.UUID) -> Profile:
        """
        Raises:
            NotFoundError: if the profile does not exist.
        """
        profile = self.repo.get_by_id(session, profile_id)
        if not profile:
            raise NotFoundError("Usuario no encontrado")
        return profile

    @staticmethod
    def _ensure_can_manage(actor: Profile, target: Profile, new_role: str | None = None) -> None:
        """Barberos manage students and barberos; Administrador accounts need an Administrador."""
        if resolve_role(actor.rol) == "Administrador":
            return
        if resolve_role(target.rol) == "Administrador" or new_role == "Administrador":
            raise PermissionDeniedError("Solo un administrador puede gestionar cuentas de administrador")

    def set_habilitado(
        self, session: Session, profile_id: uuid.UUID, payload: HabilitadoUpdate, actor: Profile
    ) -> Profile:
        profile = self.get_profile(session, profile_id)
        self._ensure_can_manage(actor, profile)
        profile.habilitado = payload.habilitado
        logger.info("Profile %s %s by %s", profile_id, "enabled" if payload.habilitado else "disabled", actor.id)
        return self.repo.update(session, profile)

    def change_role(self, session: Session, profile_id: uuid.UUID, payload: RoleUpdate, actor: Profile) -> Profile:
        """Role is parsed and normalized by the schema."""
        profile = self.get_profile(session, profile_id)
        self._ensure_can_manage(actor, profile, payload.rol)
        profile.rol = payload.rol
        logger.info("Profile %s role set to %s by %s", profile_id, payload.rol, actor.id)
        return self.repo.update(session, profile)

    # ----- Profile picture -----

    def update_photo(self, session: Session, profile: Profile, file: IncomingFile) -> Profile:
        """
        Upload a new profile picture and point the profile at it.

        Path pattern:
            <profile id>/<random>_<epoch ms>.<ext>   (bucket: profile-pictures)

        The previous picture is removed best-effort once the row is updated.
        """
        ext = validate_file(file, IMAGE_TYPES, MAX_PROFILE_PICTURE_BYTES, "foto de perfil")
        stored = self.storage.upload(
            BUCKET_PROFILE_PICTURES,
            f"{profile.id}/{generate_filename(ext)}",
            file.data,
            file.content_type or "image/jpeg",
        )

        previous = profile.foto_perfil
        profile.foto_perfil = stored.url
        updated = self.repo.update(session, profile)

        self._discard_photo(previous)
        return updated

    def remove_photo(self, session: Session, profile: Profile) -> Profile:
        """
        Delete the profile picture object and clear the column.

        Raises:
            StorageError: if the object could not be removed (row untouched).
        """
        if profile.foto_perfil:
            self.storage.remove_reference(profile.foto_perfil, BUCKET_PROFILE_PICTURES)
        profile.foto_perfil = None
        return self.repo.update(session, profile)

    def _discard_photo(self, value: str | None) -> None:
        if not value:
            return
        try:
            self.storage.remove_reference(value, BUCKET_PROFILE_PICTURES)
        except StorageError:
            logger.warning("Could not remove previous profile picture %s", value)
