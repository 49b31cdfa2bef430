# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.browser_session import get_provider_registry
from app.core.config import get_settings
from app.database import get_session
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.session.registry import ProviderRegistry
from app.session.roles import can_access_dashboard, is_instructor, resolve_role

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so the browser session cookie can be tried next.
bearer_scheme = HTTPBearer(auto_error=False)

profiles = ProfileRepository()


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Args:
        token: raw JWT from the Authorization header.

    Returns:
        Decoded JWT claims.

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido o expirado",
        )


def _principal_id_from_token(token: str) -> uuid.UUID:
    payload = decode_access_token(token)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token sin 'sub'",
        )

    # Supabase provides sub as a string; enforce UUID
    try:
        return uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="'sub' inválido en el token",
        )


def _principal_id_from_browser(request: Request, registry: ProviderRegistry) -> uuid.UUID | None:
    provider = registry.peek(request.cookies.get(get_settings().SESSION_COOKIE_NAME))
    if provider is None or provider.user is None:
        return None
    try:
        return uuid.UUID(provider.user.id)
    except ValueError:
        return None


def get_current_profile(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> Profile | None:
    """
    Resolve the caller's profile.

    Flow:
      1. Bearer token present => verify JWT, take 'sub'.
      2. Otherwise => the signed-in user of this browser's session cookie.
      3. Neither => anonymous => None.
      4. Re-read the profile row (approval/role changes apply immediately).

    There is no auto-provisioning: profiles are created at registration.

    Raises:
        HTTPException(401): malformed/expired token.
        HTTPException(403): authenticated principal without a profile.
    """
    if credentials is not None:
        principal_id = _principal_id_from_token(credentials.credentials)
    else:
        principal_id = _principal_id_from_browser(request, registry)

    if principal_id is None:
        return None

    profile = profiles.get_by_id(session, principal_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Perfil no encontrado",
        )
    return profile


def require_auth(profile: Profile | None = Depends(get_current_profile)) -> Profile:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): anonymous caller.
    """
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autorizado",
        )
    return profile


def require_enabled(profile: Profile = Depends(require_auth)) -> Profile:
    """
    Same rule as the dashboard guard: approved, or a Barbero.

    Raises:
        HTTPException(403): account pending approval.
    """
    if not can_access_dashboard(profile.habilitado is True, resolve_role(profile.rol)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cuenta pendiente de aprobación",
        )
    return profile


def require_instructor(profile: Profile = Depends(require_enabled)) -> Profile:
    """
    Enforce Barbero or Administrador role (course management).

    Raises:
        HTTPException(403): role is Estudiante.
    """
    if not is_instructor(profile.rol):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Solo instructores pueden realizar esta acción",
        )
    return profile


def require_user_manager(profile: Profile = Depends(require_enabled)) -> Profile:
    """
    Enforce a staff role (Barbero or Administrador) for user management.

    Barberos run the studio: they approve accounts and assign roles.
    Only an Administrador may touch Administrador accounts (see UserService).

    Raises:
        HTTPException(403): role is Estudiante.
    """
    if not is_instructor(profile.rol):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Se requiere rol de barbero o administrador",
        )
    return profile
