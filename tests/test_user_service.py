"""Tests for app/services/user_service.py - approval, roles and profile pictures."""

import uuid

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError, PermissionDeniedError, StorageError, ValidationError
from app.core.storage_utils import SupabaseStorage
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import HabilitadoUpdate, ProfileRead, RoleUpdate
from app.services.upload_service import IncomingFile
from app.services.user_service import UserService

PHOTO = IncomingFile("yo.jpg", "image/jpeg", b"\xff\xd8\xff jpeg")
PUBLIC = "https://test-project.supabase.co/storage/v1/object/public/profile-pictures/"


@pytest.fixture(name="service")
def service_fixture(storage: SupabaseStorage):
    return UserService(ProfileRepository(), storage)


def test_list_profiles_newest_first(service, session, student, pending_student, admin):
    names = [p.nombre for p in service.list_profiles(session)]

    assert sorted(names) == ["Alicia", "Pablo", "Sofia"]


def test_barbero_approves_student(service, session, pending_student, barbero):
    updated = service.set_habilitado(session, pending_student.id, HabilitadoUpdate(habilitado=True), barbero)

    assert updated.habilitado is True


def test_unknown_profile_is_not_found(service, session, admin):
    with pytest.raises(NotFoundError):
        service.set_habilitado(session, uuid.uuid4(), HabilitadoUpdate(habilitado=True), admin)


def test_change_role_stores_normalized_role(service, session, student, barbero):
    updated = service.change_role(session, student.id, RoleUpdate(rol="BARBERO"), barbero)

    assert updated.rol == "Barbero"


def test_only_administrador_manages_administrador_accounts(service, session, student, barbero, admin):
    with pytest.raises(PermissionDeniedError):
        service.change_role(session, student.id, RoleUpdate(rol="administrador"), barbero)
    with pytest.raises(PermissionDeniedError):
        service.set_habilitado(session, admin.id, HabilitadoUpdate(habilitado=False), barbero)
    with pytest.raises(PermissionDeniedError):
        service.change_role(session, admin.id, RoleUpdate(rol="Estudiante"), barbero)

    assert service.change_role(session, student.id, RoleUpdate(rol="Administrador"), admin).rol == "Administrador"


def test_role_update_rejects_unknown_role():
    with pytest.raises(PydanticValidationError):
        RoleUpdate(rol="superusuario")


def test_profile_read_normalizes_legacy_values(barbero):
    barbero.habilitado = None

    read = ProfileRead.model_validate(barbero)

    assert read.rol == "Barbero"
    assert read.habilitado is False


def test_update_photo_stores_under_profile_folder(service, session, student, bucket):
    student.foto_perfil = "https://i.pravatar.cc/150?u=x"

    updated = service.update_photo(session, student, PHOTO)

    path = bucket.upload.call_args.args[0]
    assert path.startswith(f"{student.id}/") and path.endswith(".jpg")
    assert updated.foto_perfil == PUBLIC + path
    bucket.remove.assert_not_called()


def test_update_photo_removes_previous_picture(service, session, student, bucket):
    student.foto_perfil = PUBLIC + "profile-pictures/old.jpg"

    service.update_photo(session, student, PHOTO)

    bucket.remove.assert_called_once_with(["profile-pictures/old.jpg", "old.jpg"])


def test_update_photo_keeps_new_picture_when_old_removal_fails(service, session, student, bucket):
    student.foto_perfil = PUBLIC + "old.jpg"
    bucket.remove.side_effect = RuntimeError("storage down")

    updated = service.update_photo(session, student, PHOTO)

    assert updated.foto_perfil.startswith(PUBLIC + f"{student.id}/")


def test_update_photo_rejects_non_images(service, session, student, bucket):
    with pytest.raises(ValidationError):
        service.update_photo(session, student, IncomingFile("cv.pdf", "application/pdf", b"%PDF"))

    bucket.upload.assert_not_called()


def test_remove_photo(service, session, student, bucket):
    student.foto_perfil = f"{student.id}/a.png"

    updated = service.remove_photo(session, student)

    bucket.remove.assert_called_once_with([f"{student.id}/a.png"])
    assert updated.foto_perfil is None


def test_remove_photo_failure_keeps_column(service, session, student, bucket):
    student.foto_perfil = f"{student.id}/a.png"
    session.commit()
    bucket.remove.side_effect = RuntimeError("storage down")

    with pytest.raises(StorageError):
        service.remove_photo(session, student)

    session.refresh(student)
    assert student.foto_perfil == f"{student.id}/a.png"
