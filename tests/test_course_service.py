"""Tests for app/services/course_service.py - course lifecycle and files."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from app.core.exceptions import (
    CourseCreationError,
    NotFoundError,
    PayloadTooLargeError,
    PermissionDeniedError,
    ValidationError,
)
from app.core.storage_utils import SupabaseStorage
from app.models.curso import Curso
from app.models.profile import Profile
from app.repositories.curso_repo import CursoRepository
from app.schemas.curso import CursoCreate, CursoUpdate
from app.services.course_service import MAX_COVER_BYTES, CourseService
from app.services.upload_service import IncomingFile

BASE = "https://test-project.supabase.co/storage/v1/object/public/cursos/"

COVER = IncomingFile("portada.png", "image/png", b"\x89PNG cover")
VIDEO = IncomingFile("clase.mp4", "video/mp4", b"video bytes")
PDF = IncomingFile("guia.pdf", "application/pdf", b"%PDF-1.4")


@pytest.fixture(name="service")
def service_fixture(storage: SupabaseStorage):
    return CourseService(CursoRepository(), storage)


def _payload(**overrides) -> CursoCreate:
    values = {
        "titulo": "Degradado clásico",
        "descripcion": "Técnica de degradado con máquina y tijera.",
        "categorias": "Corte de Cabello, Estilismo",
    }
    values.update(overrides)
    return CursoCreate(**values)


def _uploaded_paths(bucket: MagicMock) -> list[str]:
    return [c.args[0] for c in bucket.upload.call_args_list]


# ----- creation -----


def test_create_course_uploads_files_in_order(service: CourseService, session: Session, barbero: Profile, bucket):
    curso = service.create_course(session, barbero, _payload(), COVER, VIDEO, PDF)

    paths = _uploaded_paths(bucket)
    assert [p.split("/")[0] for p in paths] == ["portadas", "videos", "materiales"]
    assert curso.imagen_portada_url == BASE + paths[0]
    assert curso.video_url == BASE + paths[1]
    assert curso.material_url == BASE + paths[2]
    assert curso.barbero_id == barbero.id
    assert curso.categorias == ["Corte de Cabello", "Estilismo"]
    assert curso.publicado is False


def test_create_course_requires_instructor(service: CourseService, session: Session, student: Profile, bucket):
    with pytest.raises(PermissionDeniedError):
        service.create_course(session, student, _payload(), COVER)

    bucket.upload.assert_not_called()


def test_create_course_requires_cover(service: CourseService, session: Session, barbero: Profile):
    with pytest.raises(ValidationError, match="portada"):
        service.create_course(session, barbero, _payload(), None)


def test_create_course_validates_every_file_before_uploading(service, session, barbero, bucket):
    bad_pdf = IncomingFile("guia.exe", "application/x-msdownload", b"MZ")

    with pytest.raises(ValidationError):
        service.create_course(session, barbero, _payload(), COVER, VIDEO, bad_pdf)

    bucket.upload.assert_not_called()


def test_create_course_rejects_oversized_cover(service, session, barbero):
    big = IncomingFile("big.png", "image/png", b"0" * (MAX_COVER_BYTES + 1))

    with pytest.raises(PayloadTooLargeError):
        service.create_course(session, barbero, _payload(), big)


def test_failed_video_upload_removes_cover(service, session, barbero, bucket):
    bucket.upload.side_effect = [None, RuntimeError("timeout")]

    with pytest.raises(CourseCreationError) as exc_info:
        service.create_course(session, barbero, _payload(), COVER, VIDEO, PDF)

    assert exc_info.value.step == "video"
    cover_path = _uploaded_paths(bucket)[0]
    bucket.remove.assert_called_once_with([cover_path])
    assert session.exec(select(Curso)).all() == []


def test_failed_insert_removes_every_uploaded_file(storage, barbero, bucket):
    repo = MagicMock(spec=CursoRepository)
    repo.create.side_effect = OperationalError("INSERT", {}, Exception("db down"))
    service = CourseService(repo, storage)
    session = MagicMock()

    with pytest.raises(CourseCreationError) as exc_info:
        service.create_course(session, barbero, _payload(), COVER, VIDEO)

    assert exc_info.value.step == "registro"
    session.rollback.assert_called_once()
    removed = [c.args[0] for c in bucket.remove.call_args_list]
    assert removed == [[p] for p in _uploaded_paths(bucket)]


def test_compensation_failure_still_reports_original_step(service, session, barbero, bucket):
    bucket.upload.side_effect = [None, None, RuntimeError("timeout")]
    bucket.remove.side_effect = RuntimeError("also down")

    with pytest.raises(CourseCreationError) as exc_info:
        service.create_course(session, barbero, _payload(), COVER, VIDEO, PDF)

    assert exc_info.value.step == "material"
    assert bucket.remove.call_count == 2


# ----- reads -----


def test_published_listing_includes_instructor(service, session, barbero, student):
    service.create_course(session, barbero, _payload(titulo="Publicado", publicado=True), COVER)
    service.create_course(session, barbero, _payload(titulo="Borrador"), COVER)

    listing = service.list_published(session)

    assert [c.titulo for c in listing] == ["Publicado"]
    assert listing[0].barbero.nombre == "Bruno"
    assert {c.titulo for c in service.list_all(session)} == {"Publicado", "Borrador"}


def test_unpublished_course_visible_to_owner_and_admin_only(service, session, barbero, student, admin):
    curso = service.create_course(session, barbero, _payload(), COVER)

    assert service.get_visible_course(session, curso.id, barbero.id, barbero.rol).id == curso.id
    assert service.get_visible_course(session, curso.id, admin.id, "administrador").id == curso.id
    with pytest.raises(NotFoundError):
        service.get_visible_course(session, curso.id, student.id, student.rol)


def test_to_read_resolves_bare_paths(service, barbero):
    curso = Curso(titulo="Antiguo", descripcion="Fila vieja", barbero_id=barbero.id, imagen_portada_url="portadas/a.png")

    assert service.to_read(curso).imagen_portada_url == BASE + "portadas/a.png"


# ----- updates -----


def test_only_owner_or_admin_can_manage(service, session, barbero, admin, student):
    curso = service.create_course(session, barbero, _payload(), COVER)
    other = Profile(id=student.id, nombre="Otro", rol="Barbero", habilitado=True)

    with pytest.raises(PermissionDeniedError):
        service.set_published(session, curso.id, other, True)

    assert service.set_published(session, curso.id, admin, True).publicado is True


def test_update_course_replaces_cover_after_saving(service, session, barbero, bucket):
    curso = service.create_course(session, barbero, _payload(), COVER)
    old_path = _uploaded_paths(bucket)[0]

    updated = service.update_course(
        session, curso.id, barbero, CursoUpdate(titulo="Nuevo título"), cover=COVER
    )

    new_path = _uploaded_paths(bucket)[1]
    assert updated.titulo == "Nuevo título"
    assert updated.imagen_portada_url == BASE + new_path
    bucket.remove.assert_called_once_with([old_path])


def test_failed_update_removes_new_cover_and_keeps_old_one(service, session, barbero, bucket, monkeypatch):
    curso = service.create_course(session, barbero, _payload(), COVER)
    old_url = curso.imagen_portada_url
    monkeypatch.setattr(
        service.repo, "update", MagicMock(side_effect=OperationalError("UPDATE", {}, Exception("db down")))
    )

    with pytest.raises(OperationalError):
        service.update_course(session, curso.id, barbero, CursoUpdate(titulo="Nuevo título"), cover=COVER)

    new_path = _uploaded_paths(bucket)[1]
    bucket.remove.assert_called_once_with([new_path])
    assert session.get(Curso, curso.id).imagen_portada_url == old_url


def test_attach_and_remove_material(service, session, barbero, bucket):
    curso = service.create_course(session, barbero, _payload(), COVER)

    curso = service.attach_material(session, curso.id, barbero, "pdf", PDF)
    pdf_path = _uploaded_paths(bucket)[-1]
    assert curso.material_url == BASE + pdf_path

    with pytest.raises(ValidationError):
        service.attach_material(session, curso.id, barbero, "video", PDF)

    curso = service.remove_material(session, curso.id, barbero, "pdf")
    assert curso.material_url is None
    bucket.remove.assert_called_with([pdf_path])

    with pytest.raises(NotFoundError):
        service.remove_material(session, curso.id, barbero, "pdf")


# ----- deletion -----


def test_delete_course_removes_files_then_row(service, session, barbero, bucket):
    curso = service.create_course(session, barbero, _payload(), COVER, VIDEO)
    paths = _uploaded_paths(bucket)

    service.delete_course(session, curso.id, barbero)

    assert [c.args[0] for c in bucket.remove.call_args_list] == [[p] for p in paths]
    assert session.get(Curso, curso.id) is None


def test_delete_course_keeps_going_when_file_removal_fails(service, session, barbero, bucket):
    curso = service.create_course(session, barbero, _payload(), COVER)
    bucket.remove.side_effect = RuntimeError("storage down")

    service.delete_course(session, curso.id, barbero)

    assert session.get(Curso, curso.id) is None
