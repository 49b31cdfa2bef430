# app/services/upload_service.py
import logging
from dataclasses import dataclass
from typing import Any

from app.core.exceptions import PayloadTooLargeError, ValidationError
from app.core.storage_utils import KNOWN_BUCKETS, SupabaseStorage, file_extension, generate_filename
from app.schemas.curso import UploadRead

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# --- Accepted content types (content type -> canonical extension) ---

IMAGE_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

VIDEO_TYPES: dict[str, str] = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/ogg": "ogv",
    "video/quicktime": "mov",
}

DOCUMENT_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file, already read into memory."""

    filename: str | None
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_upload(cls, upload: Any) -> "IncomingFile | None":
        """
        Read a FastAPI UploadFile.

        Browsers send an empty part for an untouched file input, so a
        missing filename counts as no file.
        """
        if upload is None or not getattr(upload, "filename", None):
            return None
        return cls(filename=upload.filename, content_type=upload.content_type, data=upload.file.read())


def validate_file(
    file: IncomingFile,
    allowed: dict[str, str],
    max_bytes: int,
    label: str,
) -> str:
    """
    Check type and size of an upload.

    Returns:
        The extension to store the object with.

    Raises:
        ValidationError: empty file or type not allowed.
        PayloadTooLargeError: file larger than `max_bytes`.
    """
    if file.size == 0:
        raise ValidationError(f"El archivo de {label} está vacío")
    if file.content_type not in allowed:
        raise ValidationError(f"Tipo de archivo no permitido para {label}: {file.content_type or 'desconocido'}")
    if file.size > max_bytes:
        raise PayloadTooLargeError(f"El archivo de {label} supera el máximo de {max_bytes // MB}MB")
    return allowed[file.content_type]


def normalize_folder(path: str) -> str:
    """
    Clean a client-supplied folder inside a bucket.

    Raises:
        ValidationError: empty or escaping ("..") paths.
    """
    segments = [s for s in path.strip().split("/") if s]
    if not segments or any(s in (".", "..") for s in segments):
        raise ValidationError("Ruta de destino inválida")
    return "/".join(segments)


class UploadService:
    """
    Generic upload proxy used by the web client.

    Objects are stored at `<folder>/<random>_<epoch ms>.<ext>`, with a one
    hour cache-control and without overwriting.
    """

    def __init__(self, storage: SupabaseStorage, max_bytes: int):
        self.storage = storage
        self.max_bytes = max_bytes

    def upload(self, file: IncomingFile, bucket: str, folder: str) -> UploadRead:
        if bucket not in KNOWN_BUCKETS:
            raise ValidationError(f"Bucket no permitido: {bucket}")
        if file.size == 0:
            raise ValidationError("No se proporcionó ningún archivo")
        if file.size > self.max_bytes:
            raise PayloadTooLargeError(f"El archivo supera el máximo de {self.max_bytes // MB}MB")

        path = f"{normalize_folder(folder)}/{generate_filename(file_extension(file.filename))}"
        stored = self.storage.upload(
            bucket,
            path,
            file.data,
            file.content_type or "application/octet-stream",
        )
        logger.info("Uploaded %s (%s bytes) to %s", path, file.size, bucket, extra={"bucket": bucket})

        return UploadRead(
            path=stored.path,
            url=stored.url,
            fileName=file.filename or path.rsplit("/", 1)[-1],
            fileSize=file.size,
            fileType=file.content_type or "application/octet-stream",
        )
