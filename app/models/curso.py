# app/models/curso.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Curso(SQLModel, table=True):
    """
    A course published by an instructor.

    Files:
      - imagen_portada_url: cover image (required at creation)
      - video_url: intro/lesson video (optional)
      - material_url: support document, usually a PDF (optional)

    Each file column holds a public storage URL or, for older rows,
    a bare object path inside the `cursos` bucket. The object itself is
    not tied to the row transactionally.
    """

    __tablename__ = "cursos"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    titulo: str = Field(
        max_length=200,
        min_length=3,
        index=True,
        description="Course title",
    )

    descripcion: str = Field(
        default="",
        description="Long description shown on the course page",
    )

    categorias: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
        description="Category labels (see app.schemas.curso.CATEGORIAS)",
    )

    publicado: bool = Field(
        default=False,
        index=True,
        description="Visible to students",
    )

    barbero_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
        description="Owner instructor (profiles.id)",
    )

    imagen_portada_url: str | None = Field(default=None, description="Cover image")
    video_url: str | None = Field(default=None, description="Course video")
    material_url: str | None = Field(default=None, description="Support material (PDF)")

    creado_en: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )

    actualizado_en: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update timestamp (UTC)",
    )
