# app/session/models.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.session.roles import Role


@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity as reported by the identity service.

    Holds no role or approval data; those come from the profile row.
    """

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)
    app_metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class AuthSession:
    """An active identity-service session."""

    principal: Principal
    access_token: str | None = None
    refresh_token: str | None = None


class AppUser(BaseModel):
    """
    Principal merged with its profile: the object every page and guard reads.

    Frozen: the only way to change it is through SessionStore
    (publish, or merge for local patches).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    email: str | None = None
    nombre: str
    role: Role
    habilitado: bool
    foto_perfil: str | None = None
    fecha_registro: datetime | None = None
    principal: Principal | None = Field(default=None, exclude=True, repr=False)


@dataclass(frozen=True)
class SessionState:
    """
    What the app knows about the current browser session.

    loading=True until the first auth event has been handled.
    """

    user: AppUser | None = None
    loading: bool = True

    @property
    def authenticated(self) -> bool:
        return self.user is not None
