# app/schemas/curso.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

CATEGORIAS = [
    "Corte de Cabello",
    "Barba y Bigote",
    "Tintes",
    "Tratamientos",
    "Estilismo",
    "Técnicas Avanzadas",
    "Gestión de Negocio",
    "Marketing",
]

MaterialKind = Literal["video", "pdf"]


def split_categorias(raw: str | list[str] | None) -> list[str]:
    """Accept a list or a comma separated string; drop blanks and duplicates."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    seen: list[str] = []
    for item in items:
        value = item.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


class CursoCreate(SQLModel):
    """
    Text fields of the course creation form.

    Files (cover, video, material) arrive as multipart parts and are
    validated by CourseService.
    """

    model_config = ConfigDict(extra="forbid")

    titulo: str = Field(min_length=3, max_length=200)
    descripcion: str = Field(min_length=10)
    categorias: list[str] = Field(default_factory=list)
    publicado: bool = False

    @field_validator("titulo", "descripcion")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("categorias", mode="before")
    @classmethod
    def normalize_categorias(cls, v: str | list[str] | None) -> list[str]:
        return split_categorias(v)


class CursoUpdate(SQLModel):
    """Partial update of a course's text fields."""

    model_config = ConfigDict(extra="forbid")

    titulo: str | None = Field(default=None, min_length=3, max_length=200)
    descripcion: str | None = None
    categorias: list[str] | None = None

    @field_validator("titulo", "descripcion")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("categorias", mode="before")
    @classmethod
    def normalize_categorias(cls, v: str | list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return split_categorias(v)


class PublishUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    publicado: bool


class BarberoSummary(SQLModel):
    """Instructor data shown next to a course."""

    nombre: str | None = None
    foto_perfil: str | None = None


class CursoRead(SQLModel):
    """Response schema for a course; file fields are public URLs."""

    id: uuid.UUID
    titulo: str
    descripcion: str
    categorias: list[str]
    publicado: bool
    barbero_id: uuid.UUID
    imagen_portada_url: str | None = None
    video_url: str | None = None
    material_url: str | None = None
    creado_en: datetime
    actualizado_en: datetime


class CursoWithBarbero(CursoRead):
    """Published course as listed to students."""

    barbero: BarberoSummary | None = None


class UploadRead(SQLModel):
    """Response of the upload proxy (keys kept camelCase for the web client)."""

    success: bool = True
    path: str
    url: str
    fileName: str
    fileSize: int
    fileType: str
