# app/services/course_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.exceptions import (
    CourseCreationError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from app.core.storage_utils import BUCKET_CURSOS, StoredObject, SupabaseStorage, generate_filename
from app.models.curso import Curso
from app.models.profile import Profile
from app.repositories.curso_repo import CursoRepository
from app.schemas.curso import (
    BarberoSummary,
    CursoCreate,
    CursoRead,
    CursoUpdate,
    CursoWithBarbero,
    MaterialKind,
)
from app.services.upload_service import (
    DOCUMENT_TYPES,
    IMAGE_TYPES,
    MB,
    VIDEO_TYPES,
    IncomingFile,
    validate_file,
)
from app.session.roles import is_instructor, resolve_role

logger = logging.getLogger(__name__)

# --- File limits ---

MAX_COVER_BYTES = 5 * MB
# Same as the `cursos` bucket limit (see app.provisioning.storage).
MAX_COURSE_FILE_BYTES = 1024 * MB

COVER_FOLDER = "portadas"
VIDEO_FOLDER = "videos"
MATERIAL_FOLDER = "materiales"

# kind -> (column, folder, accepted types, label)
MATERIAL_SLOTS: dict[str, tuple[str, str, dict[str, str], str]] = {
    "video": ("video_url", VIDEO_FOLDER, VIDEO_TYPES, "video"),
    "pdf": ("material_url", MATERIAL_FOLDER, DOCUMENT_TYPES, "material"),
}


class CourseService:
    """
    Business logic for Curso and its files.

    Responsibilities:
      - ownership rules (instructors manage their own courses, admins any)
      - file validation and upload/remove orchestration with Supabase
      - course creation as a sequence of steps with compensation
    """

    def __init__(self, repo: CursoRepository, storage: SupabaseStorage):
        self.repo = repo
        self.storage = storage

    # ----- Helpers -----

    @staticmethod
    def _ensure_can_manage(curso: Curso, profile: Profile) -> None:
        if resolve_role(profile.rol) == "Administrador":
            return
        if curso.barbero_id != profile.id:
            raise PermissionDeniedError("Solo el instructor del curso puede modificarlo")

    def _store(self, file: IncomingFile, folder: str, allowed: dict[str, str], max_bytes: int, label: str) -> StoredObject:
        ext = validate_file(file, allowed, max_bytes, label)
        return self.storage.upload(
            BUCKET_CURSOS,
            f"{folder}/{generate_filename(ext)}",
            file.data,
            file.content_type or "application/octet-stream",
        )

    def _discard(self, objects: list[StoredObject]) -> None:
        """Best-effort removal of objects written by a failed operation."""
        for obj in objects:
            try:
                self.storage.remove(obj.bucket, [obj.path])
                logger.info("Removed orphaned object %s/%s", obj.bucket, obj.path)
            except StorageError:
                logger.warning("Could not remove orphaned object %s/%s", obj.bucket, obj.path)

    def _discard_reference(self, value: str | None) -> None:
        """Best-effort removal of the object behind a stored URL/path."""
        if not value:
            return
        try:
            self.storage.remove_reference(value, BUCKET_CURSOS)
        except StorageError:
            logger.warning("Could not remove course file %s", value)

    def to_read(self, curso: Curso) -> CursoRead:
        """Row -> response, turning bare storage paths into public URLs."""
        data = curso.model_dump()
        for column in ("imagen_portada_url", "video_url", "material_url"):
            data[column] = self.storage.public_url(BUCKET_CURSOS, data[column])
        return CursoRead.model_validate(data)

    def to_listing(self, curso: Curso, barbero: Profile | None) -> CursoWithBarbero:
        summary = None
        if barbero is not None:
            summary = BarberoSummary(nombre=barbero.nombre, foto_perfil=barbero.foto_perfil)
        return CursoWithBarbero.model_validate({**self.to_read(curso).model_dump(), "barbero": summary})

    # ----- Queries -----

    def list_published(self, session: Session, skip: int = 0, limit: int = 50) -> list[CursoWithBarbero]:
        """Published courses with instructor name/photo, newest first."""
        rows = self.repo.list_with_barbero(session, published_only=True, skip=skip, limit=limit)
        return [self.to_listing(curso, barbero) for curso, barbero in rows]

    def list_all(self, session: Session, skip: int = 0, limit: int = 100) -> list[CursoWithBarbero]:
        """Every course, published or not (administrators)."""
        rows = self.repo.list_with_barbero(session, published_only=False, skip=skip, limit=limit)
        return [self.to_listing(curso, barbero) for curso, barbero in rows]

    def list_for_instructor(self, session: Session, profile: Profile) -> list[CursoRead]:
        return [self.to_read(c) for c in self.repo.list_by_barbero(session, profile.id)]

    def get_course(self, session: Session, curso_id: uuid.UUID) -> Curso:
        curso = self.repo.get_by_id(session, curso_id)
        if not curso:
            raise NotFoundError("Curso no encontrado")
        return curso

    def get_visible_course(self, session: Session, curso_id: uuid.UUID, viewer_id: uuid.UUID, viewer_role: str) -> Curso:
        """
        A course as seen by a viewer.

        Unpublished courses are visible only to their instructor and to
        administrators; anyone else gets 404.
        """
        curso = self.get_course(session, curso_id)
        if curso.publicado:
            return curso
        if resolve_role(viewer_role) == "Administrador" or curso.barbero_id == viewer_id:
            return curso
        raise NotFoundError("Curso no encontrado")

    # ----- Creation -----

    def create_course(
        self,
        session: Session,
        profile: Profile,
        payload: CursoCreate,
        cover: IncomingFile | None,
        video: IncomingFile | None = None,
        material: IncomingFile | None = None,
    ) -> Curso:
        """
        Create a course: upload cover, then video, then material, then
        insert the row.

        Steps run one after the other. If a step fails, the objects
        uploaded by the earlier steps are removed (best-effort) and
        CourseCreationError names the failed step. Validation errors are
        raised before anything is uploaded.

        Raises:
            PermissionDeniedError: caller is not an instructor.
            ValidationError: missing cover or invalid file.
            CourseCreationError: a storage step or the insert failed.
        """
        if not is_instructor(profile.rol):
            raise PermissionDeniedError("Solo instructores pueden crear cursos")
        if cover is None:
            raise ValidationError("La imagen de portada es obligatoria")

        # Fail fast on bad input before touching storage.
        validate_file(cover, IMAGE_TYPES, MAX_COVER_BYTES, "portada")
        if video is not None:
            validate_file(video, VIDEO_TYPES, MAX_COURSE_FILE_BYTES, "video")
        if material is not None:
            validate_file(material, DOCUMENT_TYPES, MAX_COURSE_FILE_BYTES, "material")

        uploaded: list[StoredObject] = []
        steps: list[tuple[str, IncomingFile | None, str, dict[str, str], int]] = [
            ("portada", cover, COVER_FOLDER, IMAGE_TYPES, MAX_COVER_BYTES),
            ("video", video, VIDEO_FOLDER, VIDEO_TYPES, MAX_COURSE_FILE_BYTES),
            ("material", material, MATERIAL_FOLDER, DOCUMENT_TYPES, MAX_COURSE_FILE_BYTES),
        ]
        urls: dict[str, str | None] = {"portada": None, "video": None, "material": None}

        for step, file, folder, allowed, max_bytes in steps:
            if file is None:
                continue
            try:
                stored = self._store(file, folder, allowed, max_bytes, step)
            except StorageError as exc:
                self._discard(uploaded)
                raise CourseCreationError(step, exc.message) from exc
            uploaded.append(stored)
            urls[step] = stored.url

        curso = Curso(
            titulo=payload.titulo,
            descripcion=payload.descripcion,
            categorias=payload.categorias,
            publicado=payload.publicado,
            barbero_id=profile.id,
            imagen_portada_url=urls["portada"],
            video_url=urls["video"],
            material_url=urls["material"],
        )
        try:
            return self.repo.create(session, curso)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Course insert failed, removing %s uploaded objects: %s", len(uploaded), exc)
            self._discard(uploaded)
            raise CourseCreationError("registro", "no se pudo guardar el curso") from exc

    # ----- Updates -----

    def update_course(
        self,
        session: Session,
        curso_id: uuid.UUID,
        profile: Profile,
        payload: CursoUpdate,
        cover: IncomingFile | None = None,
    ) -> Curso:
        """
        Partial update; a new cover replaces the old one.

        The old cover is removed only after the row points at the new one.
        """
        curso = self.get_course(session, curso_id)
        self._ensure_can_manage(curso, profile)

        if payload.titulo is not None:
            curso.titulo = payload.titulo
        if payload.descripcion is not None:
            curso.descripcion = payload.descripcion
        if payload.categorias is not None:
            curso.categorias = payload.categorias

        old_cover = None
        uploaded: list[StoredObject] = []
        if cover is not None:
            stored = self._store(cover, COVER_FOLDER, IMAGE_TYPES, MAX_COVER_BYTES, "portada")
            uploaded.append(stored)
            old_cover, curso.imagen_portada_url = curso.imagen_portada_url, stored.url

        curso.actualizado_en = datetime.now(timezone.utc)
        try:
            updated = self.repo.update(session, curso)
        except SQLAlchemyError:
            session.rollback()
            self._discard(uploaded)
            raise
        self._discard_reference(old_cover)
        return updated

    def set_published(self, session: Session, curso_id: uuid.UUID, profile: Profile, publicado: bool) -> Curso:
        curso = self.get_course(session, curso_id)
        self._ensure_can_manage(curso, profile)
        curso.publicado = publicado
        curso.actualizado_en = datetime.now(timezone.utc)
        return self.repo.update(session, curso)

    # ----- Materials -----

    def attach_material(
        self,
        session: Session,
        curso_id: uuid.UUID,
        profile: Profile,
        kind: MaterialKind,
        file: IncomingFile,
    ) -> Curso:
        """Upload (or replace) the course video or PDF."""
        column, folder, allowed, label = MATERIAL_SLOTS[kind]
        curso = self.get_course(session, curso_id)
        self._ensure_can_manage(curso, profile)

        stored = self._store(file, folder, allowed, MAX_COURSE_FILE_BYTES, label)
        previous = getattr(curso, column)
        setattr(curso, column, stored.url)
        curso.actualizado_en = datetime.now(timezone.utc)
        try:
            updated = self.repo.update(session, curso)
        except SQLAlchemyError:
            session.rollback()
            self._discard([stored])
            raise
        self._discard_reference(previous)
        return updated

    def remove_material(self, session: Session, curso_id: uuid.UUID, profile: Profile, kind: MaterialKind) -> Curso:
        """
        Delete the course video or PDF.

        The storage object is removed first, then the column cleared.
        """
        column, _, _, label = MATERIAL_SLOTS[kind]
        curso = self.get_course(session, curso_id)
        self._ensure_can_manage(curso, profile)

        current = getattr(curso, column)
        if not current:
            raise NotFoundError(f"El curso no tiene {label}")

        self.storage.remove_reference(current, BUCKET_CURSOS)
        setattr(curso, column, None)
        curso.actualizado_en = datetime.now(timezone.utc)
        return self.repo.update(session, curso)

    # ----- Deletion -----

    def delete_course(self, session: Session, curso_id: uuid.UUID, profile: Profile) -> None:
        """
        Delete a course's files, then its row.

        File removal is best-effort and independent of the row delete: a
        failed removal leaves an orphaned object, a failed row delete
        leaves a row whose files are gone.
        """
        curso = self.get_course(session, curso_id)
        self._ensure_can_manage(curso, profile)

        for value in (curso.imagen_portada_url, curso.video_url, curso.material_url):
            self._discard_reference(value)

        self.repo.delete(session, curso)
