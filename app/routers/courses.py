# app/routers/courses.py
import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from app.core.auth import require_enabled, require_instructor
from app.core.exceptions import ValidationError
from app.core.storage_utils import SupabaseStorage
from app.database import get_session
from app.models.profile import Profile
from app.repositories.curso_repo import CursoRepository
from app.schemas.curso import (
    CATEGORIAS,
    CursoCreate,
    CursoRead,
    CursoUpdate,
    CursoWithBarbero,
    MaterialKind,
    PublishUpdate,
)
from app.services.course_service import CourseService
from app.services.upload_service import IncomingFile

router = APIRouter(prefix="/courses", tags=["Courses"])

repo = CursoRepository()
service = CourseService(repo, SupabaseStorage())


def _form_error(exc: PydanticValidationError) -> ValidationError:
    messages = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return ValidationError("; ".join(messages))


# -------- Read endpoints --------


@router.get("", response_model=list[CursoWithBarbero], dependencies=[Depends(require_enabled)])
def list_published(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    Published courses with instructor name and photo, newest first.

    Auth:
      - approved account (or Barbero).
    """
    return service.list_published(session, skip=skip, limit=limit)


@router.get("/categories", response_model=list[str])
def list_categories():
    """Category catalogue used by the course form (public)."""
    return CATEGORIAS


@router.get("/mine", response_model=list[CursoRead])
def list_mine(
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """Courses owned by the calling instructor, newest first."""
    return service.list_for_instructor(session, profile)


@router.get("/{curso_id}", response_model=CursoRead)
def get_course(
    curso_id: uuid.UUID,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_enabled),
):
    """
    Single course.

    Unpublished courses are only visible to their instructor and admins.
    """
    curso = service.get_visible_course(session, curso_id, profile.id, profile.rol)
    return service.to_read(curso)


# -------- Instructor endpoints --------


@router.post("", response_model=CursoRead, status_code=status.HTTP_201_CREATED)
def create_course(
    titulo: str = Form(...),
    descripcion: str = Form(...),
    categorias: str = Form(""),
    publicado: bool = Form(False),
    imagen: UploadFile | None = File(None),
    video: UploadFile | None = File(None),
    material: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """
    Create a course (multipart form).

    - imagen: cover image (required; JPEG, PNG, GIF, WEBP; max 5MB)
    - video: optional (MP4, WEBM, OGG, MOV)
    - material: optional (PDF, DOC, DOCX)
    - categorias: comma separated

    Files are uploaded in that order, then the row is inserted. On
    failure, already uploaded files are removed and the error names the
    failed step.
    """
    try:
        payload = CursoCreate(
            titulo=titulo,
            descripcion=descripcion,
            categorias=categorias,
            publicado=publicado,
        )
    except PydanticValidationError as exc:
        raise _form_error(exc)

    curso = service.create_course(
        session,
        profile,
        payload,
        cover=IncomingFile.from_upload(imagen),
        video=IncomingFile.from_upload(video),
        material=IncomingFile.from_upload(material),
    )
    return service.to_read(curso)


@router.patch("/{curso_id}", response_model=CursoRead)
def update_course(
    curso_id: uuid.UUID,
    titulo: str | None = Form(None),
    descripcion: str | None = Form(None),
    categorias: str | None = Form(None),
    imagen: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """Partial update of a course; a new `imagen` replaces the cover."""
    try:
        payload = CursoUpdate(titulo=titulo, descripcion=descripcion, categorias=categorias)
    except PydanticValidationError as exc:
        raise _form_error(exc)

    curso = service.update_course(session, curso_id, profile, payload, cover=IncomingFile.from_upload(imagen))
    return service.to_read(curso)


@router.patch("/{curso_id}/publish", response_model=CursoRead)
def set_published(
    curso_id: uuid.UUID,
    payload: PublishUpdate,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """Publish or unpublish a course."""
    return service.to_read(service.set_published(session, curso_id, profile, payload.publicado))


@router.delete("/{curso_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(
    curso_id: uuid.UUID,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """
    Delete a course and (best-effort) its files.
    """
    service.delete_course(session, curso_id, profile)
    return None


# -------- Materials --------


@router.post("/{curso_id}/materials/{kind}", response_model=CursoRead)
def attach_material(
    curso_id: uuid.UUID,
    kind: MaterialKind,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """
    Upload or replace course material.

    - kind=video: MP4, WEBM, OGG, MOV
    - kind=pdf: PDF, DOC, DOCX
    """
    incoming = IncomingFile.from_upload(file)
    if incoming is None:
        raise ValidationError("No se proporcionó ningún archivo")
    return service.to_read(service.attach_material(session, curso_id, profile, kind, incoming))


@router.delete("/{curso_id}/materials/{kind}", response_model=CursoRead)
def remove_material(
    curso_id: uuid.UUID,
    kind: MaterialKind,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_instructor),
):
    """Delete the course video or PDF (storage object and column)."""
    return service.to_read(service.remove_material(session, curso_id, profile, kind))
