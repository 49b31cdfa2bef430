# app/routers/upload.py
from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.core.auth import require_auth
from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.storage_utils import SupabaseStorage
from app.schemas.curso import UploadRead
from app.services.upload_service import MB, IncomingFile, UploadService

router = APIRouter(prefix="/upload", tags=["Upload"])

service = UploadService(SupabaseStorage(), max_bytes=get_settings().MAX_UPLOAD_MB * MB)


@router.post(
    "",
    response_model=UploadRead,
    dependencies=[Depends(require_auth)],
    summary="Upload a file to a storage bucket",
)
def upload_file(
    file: UploadFile | None = File(None),
    bucket: str | None = Form(None),
    path: str | None = Form(None),
):
    """
    Upload proxy for the web client.

    Form fields:
      - file: the file
      - bucket: target bucket (profile-pictures, cursos, legacy course buckets)
      - path: folder inside the bucket

    The object is stored at `<path>/<random>_<epoch ms>.<ext>`.

    Auth:
      - Bearer token or browser session.
    """
    incoming = IncomingFile.from_upload(file)
    if incoming is None:
        raise ValidationError("No se proporcionó ningún archivo")
    if not bucket or not path:
        raise ValidationError("Faltan parámetros requeridos (bucket, path)")

    return service.upload(incoming, bucket, path)
