# app/schemas/profile.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from app.session.roles import Role, parse_role, resolve_role


class ProfileRead(SQLModel):
    """
    Response schema for a profile.

    `rol` is always the normalized role, whatever casing the row holds;
    `habilitado` is strictly boolean (NULL reads as False).
    """

    id: uuid.UUID
    nombre: str | None = None
    email: str | None = None
    rol: Role
    habilitado: bool
    foto_perfil: str | None = None
    fecha_registro: datetime

    @field_validator("rol", mode="before")
    @classmethod
    def normalize_rol(cls, v: object) -> str:
        return resolve_role(v)

    @field_validator("habilitado", mode="before")
    @classmethod
    def strict_habilitado(cls, v: object) -> bool:
        return v is True


class HabilitadoUpdate(SQLModel):
    """Admin-only approval toggle."""

    model_config = ConfigDict(extra="forbid")

    habilitado: bool


class RoleUpdate(SQLModel):
    """
    Admin-only role change.

    Accepts any casing ("barbero", "BARBERO"); unknown labels are
    rejected rather than defaulted.
    """

    model_config = ConfigDict(extra="forbid")

    rol: Role

    @field_validator("rol", mode="before")
    @classmethod
    def parse_rol(cls, v: object) -> str:
        role = parse_role(v)
        if role is None:
            raise ValueError("rol must be one of Estudiante, Barbero, Administrador")
        return role
