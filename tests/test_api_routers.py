"""Tests for the JSON API: /api/upload, /api/courses and /api/users."""

import uuid

from jose import jwt
from sqlmodel import Session

from app.models.curso import Curso
from app.models.profile import Profile

PUBLIC = "https://test-project.supabase.co/storage/v1/object/public/"

COVER = ("portada.png", b"\x89PNG cover", "image/png")


def _course_form(**overrides) -> dict:
    form = {
        "titulo": "Barba clásica",
        "descripcion": "Perfilado de barba con navaja.",
        "categorias": "Barba y Bigote",
    }
    form.update(overrides)
    return form


# -------- /api/upload --------


def test_upload_requires_authentication(api_as):
    client = api_as(None)

    response = client.post("/api/upload", data={"bucket": "cursos", "path": "x"}, files={"file": COVER})

    assert response.status_code == 401
    assert response.json() == {"type": "http_error", "message": "No autorizado"}


def test_upload_stores_object_under_folder(api_as, student, bucket):
    client = api_as(student)

    response = client.post(
        "/api/upload",
        data={"bucket": "cursos", "path": "/portadas//nuevas/"},
        files={"file": COVER},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["path"].startswith("portadas/nuevas/") and body["path"].endswith(".png")
    assert body["url"] == PUBLIC + "cursos/" + body["path"]
    assert body["fileName"] == "portada.png"
    assert body["fileType"] == "image/png"
    assert body["fileSize"] == len(COVER[1])
    bucket.upload.assert_called_once()


def test_upload_missing_parameters(api_as, student):
    client = api_as(student)

    assert client.post("/api/upload", data={"bucket": "cursos", "path": "x"}).json()["message"] == (
        "No se proporcionó ningún archivo"
    )
    response = client.post("/api/upload", data={"bucket": "cursos"}, files={"file": COVER})
    assert response.status_code == 400
    assert response.json()["message"] == "Faltan parámetros requeridos (bucket, path)"


def test_upload_rejects_unknown_bucket_and_escaping_path(api_as, student, bucket):
    client = api_as(student)

    assert client.post("/api/upload", data={"bucket": "privado", "path": "x"}, files={"file": COVER}).status_code == 400
    assert client.post("/api/upload", data={"bucket": "cursos", "path": "../x"}, files={"file": COVER}).status_code == 400
    bucket.upload.assert_not_called()


def test_upload_storage_failure(api_as, student, bucket):
    bucket.upload.side_effect = RuntimeError("bucket not found")

    response = api_as(student).post("/api/upload", data={"bucket": "cursos", "path": "x"}, files={"file": COVER})

    assert response.status_code == 500
    assert response.json() == {"type": "storage_error", "message": "Error al subir el archivo"}


# -------- /api/courses --------


def test_categories_are_public(api_as):
    response = api_as(None).get("/api/courses/categories")

    assert response.status_code == 200
    assert "Corte de Cabello" in response.json()


def test_barbero_creates_course_with_cover(api_as, barbero, bucket):
    response = api_as(barbero).post("/api/courses", data=_course_form(), files={"imagen": COVER})

    assert response.status_code == 201
    body = response.json()
    assert body["barbero_id"] == str(barbero.id)
    assert body["categorias"] == ["Barba y Bigote"]
    assert body["imagen_portada_url"].startswith(PUBLIC + "cursos/portadas/")
    assert body["video_url"] is None


def test_create_course_form_validation(api_as, barbero, bucket):
    response = api_as(barbero).post("/api/courses", data=_course_form(titulo="ab"), files={"imagen": COVER})

    assert response.status_code == 400
    assert response.json()["type"] == "validation_error"
    assert "titulo" in response.json()["message"]
    bucket.upload.assert_not_called()


def test_create_course_requires_cover(api_as, barbero):
    response = api_as(barbero).post("/api/courses", data=_course_form())

    assert response.status_code == 400
    assert response.json()["message"] == "La imagen de portada es obligatoria"


def test_create_course_failed_step_is_reported(api_as, barbero, bucket):
    bucket.upload.side_effect = [None, RuntimeError("timeout")]

    response = api_as(barbero).post(
        "/api/courses",
        data=_course_form(),
        files={"imagen": COVER, "video": ("clase.mp4", b"video", "video/mp4")},
    )

    assert response.status_code == 500
    assert response.json()["type"] == "course_creation_error"
    assert "video" in response.json()["message"]
    bucket.remove.assert_called_once()


def test_students_cannot_manage_courses(api_as, student):
    response = api_as(student).post("/api/courses", data=_course_form(), files={"imagen": COVER})

    assert response.status_code == 403
    assert response.json()["message"] == "Solo instructores pueden realizar esta acción"


def test_pending_students_cannot_list_courses(api_as, pending_student):
    response = api_as(pending_student).get("/api/courses")

    assert response.status_code == 403
    assert response.json()["message"] == "Cuenta pendiente de aprobación"


def test_course_publishing_flow(api_as, barbero, student):
    created = api_as(barbero).post("/api/courses", data=_course_form(), files={"imagen": COVER}).json()
    curso_id = created["id"]

    assert api_as(student).get("/api/courses").json() == []
    assert api_as(student).get(f"/api/courses/{curso_id}").status_code == 404

    published = api_as(barbero).patch(f"/api/courses/{curso_id}/publish", json={"publicado": True})
    assert published.json()["publicado"] is True

    listing = api_as(student).get("/api/courses").json()
    assert [c["id"] for c in listing] == [curso_id]
    assert listing[0]["barbero"]["nombre"] == "Bruno"
    assert api_as(student).get(f"/api/courses/{curso_id}").status_code == 200


def test_instructor_only_sees_own_courses(api_as, barbero, admin):
    api_as(barbero).post("/api/courses", data=_course_form(titulo="Del barbero"), files={"imagen": COVER})
    api_as(admin).post("/api/courses", data=_course_form(titulo="Del admin"), files={"imagen": COVER})

    mine = api_as(barbero).get("/api/courses/mine").json()

    assert [c["titulo"] for c in mine] == ["Del barbero"]


def test_update_and_materials(api_as, barbero, bucket):
    client = api_as(barbero)
    curso_id = client.post("/api/courses", data=_course_form(), files={"imagen": COVER}).json()["id"]

    updated = client.patch(f"/api/courses/{curso_id}", data={"titulo": "Barba moderna"})
    assert updated.json()["titulo"] == "Barba moderna"

    attached = client.post(
        f"/api/courses/{curso_id}/materials/pdf",
        files={"file": ("guia.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert attached.json()["material_url"].startswith(PUBLIC + "cursos/materiales/")

    assert client.post(
        f"/api/courses/{curso_id}/materials/audio",
        files={"file": ("a.mp3", b"ID3", "audio/mpeg")},
    ).status_code == 422

    removed = client.delete(f"/api/courses/{curso_id}/materials/pdf")
    assert removed.json()["material_url"] is None


def test_other_instructor_cannot_delete_course(api_as, barbero, session: Session):
    other = Profile(id=uuid.uuid4(), nombre="Otro", email="otro@example.com", rol="Barbero", habilitado=True)
    session.add(other)
    session.commit()
    curso_id = api_as(barbero).post("/api/courses", data=_course_form(), files={"imagen": COVER}).json()["id"]

    response = api_as(other).delete(f"/api/courses/{curso_id}")

    assert response.status_code == 403
    assert response.json()["type"] == "permission_denied"


def test_delete_course(api_as, barbero, bucket, session: Session):
    client = api_as(barbero)
    curso_id = client.post("/api/courses", data=_course_form(), files={"imagen": COVER}).json()["id"]

    response = client.delete(f"/api/courses/{curso_id}")

    assert response.status_code == 204
    assert session.get(Curso, uuid.UUID(curso_id)) is None
    bucket.remove.assert_called_once()


# -------- /api/users --------


def test_read_me_returns_unapproved_profile(api_as, pending_student):
    response = api_as(pending_student).get("/api/users/me")

    assert response.status_code == 200
    assert response.json()["habilitado"] is False
    assert response.json()["rol"] == "Estudiante"


def test_user_management_requires_staff_role(api_as, student, pending_student):
    response = api_as(student).patch(f"/api/users/{pending_student.id}/habilitado", json={"habilitado": True})

    assert response.status_code == 403
    assert response.json()["message"] == "Se requiere rol de barbero o administrador"
    assert api_as(student).get("/api/users").status_code == 403


def test_barbero_approves_accounts_and_assigns_roles(api_as, barbero, pending_student, admin):
    client = api_as(barbero)

    approved = client.patch(f"/api/users/{pending_student.id}/habilitado", json={"habilitado": True})
    assert approved.status_code == 200
    assert approved.json()["habilitado"] is True

    assert client.patch(f"/api/users/{pending_student.id}/role", json={"rol": "barbero"}).json()["rol"] == "Barbero"
    assert {u["email"] for u in client.get("/api/users").json()} == {barbero.email, pending_student.email, admin.email}

    promoted = client.patch(f"/api/users/{pending_student.id}/role", json={"rol": "Administrador"})
    assert promoted.status_code == 403
    assert promoted.json()["type"] == "permission_denied"
    assert client.patch(f"/api/users/{admin.id}/habilitado", json={"habilitado": False}).status_code == 403


def test_admin_approves_and_changes_role(api_as, admin, pending_student):
    client = api_as(admin)

    approved = client.patch(f"/api/users/{pending_student.id}/habilitado", json={"habilitado": True})
    assert approved.json()["habilitado"] is True

    promoted = client.patch(f"/api/users/{pending_student.id}/role", json={"rol": "barbero"})
    assert promoted.json()["rol"] == "Barbero"

    rejected = client.patch(f"/api/users/{pending_student.id}/role", json={"rol": "root"})
    assert rejected.status_code == 422

    users = client.get("/api/users").json()
    assert {u["email"] for u in users} == {admin.email, pending_student.email}


def test_admin_on_unknown_user(api_as, admin):
    response = api_as(admin).patch(f"/api/users/{uuid.uuid4()}/habilitado", json={"habilitado": True})

    assert response.status_code == 404
    assert response.json() == {"type": "not_found", "message": "Usuario no encontrado"}


def test_delete_my_photo(api_as, student, session: Session, bucket):
    student.foto_perfil = f"{student.id}/yo.png"
    session.add(student)
    session.commit()

    response = api_as(student).delete("/api/users/me/photo")

    assert response.status_code == 200
    assert response.json()["foto_perfil"] is None
    bucket.remove.assert_called_once_with([f"{student.id}/yo.png"])


def test_health(api_as):
    assert api_as(None).get("/health").json() == {"status": "ok", "service": "studio-barberia-backend"}


def test_bearer_token_authenticates_api_calls(browser, student):
    token = jwt.encode({"sub": str(student.id)}, "test-jwt-secret", algorithm="HS256")

    response = browser.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["id"] == str(student.id)


def test_bearer_token_without_profile(browser):
    token = jwt.encode({"sub": str(uuid.uuid4())}, "test-jwt-secret", algorithm="HS256")

    response = browser.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["message"] == "Perfil no encontrado"
