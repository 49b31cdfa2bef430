# app/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Application profile for an authenticated principal.

    Identity:
      - id: MUST match Supabase auth.users.id (one row per registered principal)

    Role:
      - stored as free text (historical rows use "estudiante", "barbero", ...)
      - always read through `app.session.roles.resolve_role`, which
        normalizes to Estudiante | Barbero | Administrador

    Gating:
      - habilitado: admin approval flag; only `True` unlocks the dashboard
        (Barbero accounts are let in regardless)

    Passwords live in Supabase Auth, never here.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    nombre: str | None = Field(
        default=None,
        max_length=200,
        description="Display name entered at registration",
    )

    email: str | None = Field(
        default=None,
        index=True,
        description="Email from Supabase auth.users",
    )

    rol: str | None = Field(
        default="Estudiante",
        index=True,
        description="Application role (free text, normalized on read)",
    )

    habilitado: bool | None = Field(
        default=False,
        description="Approved by an administrator",
    )

    foto_perfil: str | None = Field(
        default=None,
        description="Public URL (or bare storage path) of the profile picture",
    )

    fecha_registro: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Registration timestamp (UTC)",
    )
