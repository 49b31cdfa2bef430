# app/routers/users.py
import uuid

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app.core.auth import require_auth, require_user_manager
from app.core.browser_session import get_provider_registry
from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.storage_utils import SupabaseStorage
from app.database import get_session
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import HabilitadoUpdate, ProfileRead, RoleUpdate
from app.services.upload_service import IncomingFile
from app.services.user_service import UserService
from app.session.registry import ProviderRegistry

router = APIRouter(prefix="/users", tags=["Users"])

repo = ProfileRepository()
service = UserService(repo, SupabaseStorage())


def _sync_browser_session(request: Request, registry: ProviderRegistry, profile: Profile) -> None:
    """
    Mirror a saved profile change into the caller's browser session.

    The row is already written; this only patches the in-memory user so
    the next page shows the change without a reload.
    """
    provider = registry.peek(request.cookies.get(get_settings().SESSION_COOKIE_NAME))
    if provider is not None and provider.user is not None and provider.user.id == str(profile.id):
        provider.update_user_profile({"foto_perfil": profile.foto_perfil})


# -------- Self profile --------


@router.get("/me", response_model=ProfileRead)
def read_me(profile: Profile = Depends(require_auth)):
    """
    Return the caller's profile (approved or not).
    """
    return profile


@router.post("/me/photo", response_model=ProfileRead)
async def upload_my_photo(
    request: Request,
    file: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_auth),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """
    Upload or replace the caller's profile picture.

    - JPEG, PNG, GIF, WEBP; max 5MB.
    - The previous picture is removed from storage.
    """
    incoming = await run_in_threadpool(IncomingFile.from_upload, file)
    if incoming is None:
        raise ValidationError("No se proporcionó ningún archivo")

    updated = await run_in_threadpool(service.update_photo, session, profile, incoming)
    _sync_browser_session(request, registry, updated)
    return updated


@router.delete("/me/photo", response_model=ProfileRead)
async def delete_my_photo(
    request: Request,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_auth),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Remove the caller's profile picture."""
    updated = await run_in_threadpool(service.remove_photo, session, profile)
    _sync_browser_session(request, registry, updated)
    return updated


# -------- User management (Barbero / Administrador) --------


@router.get(
    "",
    response_model=list[ProfileRead],
    dependencies=[Depends(require_user_manager)],
)
def list_users(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 100,
):
    """
    List all profiles, newest registration first.
    """
    return service.list_profiles(session, skip, limit)


@router.patch("/{user_id}/habilitado", response_model=ProfileRead)
def set_habilitado(
    user_id: uuid.UUID,
    payload: HabilitadoUpdate,
    session: Session = Depends(get_session),
    actor: Profile = Depends(require_user_manager),
):
    """
    Approve or disable an account.

    Takes effect on the user's next page load.
    """
    return service.set_habilitado(session, user_id, payload, actor)


@router.patch("/{user_id}/role", response_model=ProfileRead)
def change_role(
    user_id: uuid.UUID,
    payload: RoleUpdate,
    session: Session = Depends(get_session),
    actor: Profile = Depends(require_user_manager),
):
    """
    Update a user's role.

    Allowed roles: Estudiante, Barbero, Administrador (any casing).
    Granting or removing Administrador needs an Administrador.
    """
    return service.change_role(session, user_id, payload, actor)
