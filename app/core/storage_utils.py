# app/core/storage_utils.py
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable
from urllib.parse import unquote, urlparse

from supabase import Client

from app.core.config import get_settings
from app.core.exceptions import StorageError
from app.core.supabase_client import supabase_admin

logger = logging.getLogger(__name__)

BUCKET_PROFILE_PICTURES = "profile-pictures"
BUCKET_CURSOS = "cursos"

# Buckets created by earlier versions of the course form. Objects there
# are still referenced by old rows, so removal must accept them.
LEGACY_BUCKETS = ("videos", "materiales", "course-materials")

KNOWN_BUCKETS = (BUCKET_PROFILE_PICTURES, BUCKET_CURSOS, *LEGACY_BUCKETS)

PUBLIC_MARKER = "/storage/v1/object/public/"


@dataclass(frozen=True)
class StoredObject:
    """An object written to storage: where it lives and how to reach it."""

    bucket: str
    path: str
    url: str


def public_url_for(base_url: str, bucket: str, path: str) -> str:
    """
    Public URL template:
        <base>/storage/v1/object/public/<bucket>/<path>
    """
    return f"{base_url.rstrip('/')}{PUBLIC_MARKER}{bucket}/{path.lstrip('/')}"


def parse_public_url(url: str) -> tuple[str, str] | None:
    """
    Split a public storage URL into (bucket, object path).

    Looks for the `object/public/<bucket>/...` segments anywhere in the
    URL path, so it works for custom domains and signed-style prefixes.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/cursos/portadas/a.png
        -> ("cursos", "portadas/a.png")

    Returns:
        None if the value is not a storage URL.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None

    parts = [unquote(p) for p in parsed.path.split("/") if p]
    try:
        object_idx = parts.index("object")
    except ValueError:
        return None

    # object / public / <bucket> / <path...>
    if len(parts) < object_idx + 4 or parts[object_idx + 1] != "public":
        return None

    bucket = parts[object_idx + 2]
    return bucket, "/".join(parts[object_idx + 3 :])


def removal_candidates(value: str, bucket: str) -> list[str]:
    """
    Object paths to remove for a stored reference (URL or bare path).

    Older uploads put profile pictures under a folder named like the
    bucket (`profile-pictures/profile-pictures/x.jpg`), while some rows
    were written with that prefix dropped. When the path starts with the
    bucket name both variants are returned; removing a path that does
    not exist is a no-op on the storage side.
    """
    parsed = parse_public_url(value)
    if parsed is not None:
        url_bucket, path = parsed
        if url_bucket != bucket:
            return []
    elif value.startswith(("http://", "https://")):
        # External URL (e.g. placeholder avatar): nothing of ours to remove.
        return []
    else:
        path = value.strip().lstrip("/")

    if not path:
        return []

    candidates = [path]
    segments = path.split("/")
    if len(segments) > 1 and segments[0] == bucket:
        candidates.append("/".join(segments[1:]))
    return candidates


def generate_filename(ext: str) -> str:
    """
    Collision-resistant object name: "<random>_<epoch ms>.<ext>".

    Args:
        ext: File extension without dot (e.g. "png", "mp4")
    """
    return f"{uuid.uuid4().hex[:12]}_{int(time.time() * 1000)}.{ext.lower()}"


def file_extension(filename: str | None, default: str = "bin") -> str:
    """Extension of an uploaded filename, lower-cased, without the dot."""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
        if ext:
            return ext
    return default


class SupabaseStorage:
    """
    Thin wrapper over the service-role Supabase Storage API.

    Every failure is raised as StorageError with a user-facing message;
    the remote error is logged and chained. Callers decide whether a
    failure is fatal or best-effort.
    """

    def __init__(self, client_factory: Callable[[], Client] = supabase_admin, base_url: str | None = None):
        self._client_factory = client_factory
        self._base_url = base_url

    @property
    def client(self) -> Client:
        return self._client_factory()

    @property
    def base_url(self) -> str:
        return self._base_url or get_settings().SUPABASE_URL

    def upload(
        self,
        bucket: str,
        path: str,
        file_bytes: bytes,
        content_type: str,
        *,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> StoredObject:
        """
        Upload raw bytes and return where they landed.

        Raises:
            StorageError: if the upload fails (including "already exists"
                when upsert is False).
        """
        try:
            self.client.storage.from_(bucket).upload(
                path,
                file_bytes,
                file_options={
                    "cache-control": cache_control,
                    "upsert": "true" if upsert else "false",
                    "content-type": content_type,
                },
            )
        except Exception as exc:
            logger.error("Upload to %s/%s failed: %s", bucket, path, exc, extra={"bucket": bucket})
            raise StorageError("Error al subir el archivo") from exc

        return StoredObject(bucket=bucket, path=path, url=self.public_url(bucket, path))

    def public_url(self, bucket: str, value: str | None) -> str | None:
        """
        Public URL for a stored reference.

        Full URLs are returned unchanged; bare paths are resolved
        against the bucket. Empty values stay None.
        """
        if not value:
            return None
        if value.startswith(("http://", "https://")):
            return value
        return public_url_for(self.base_url, bucket, value)

    def remove(self, bucket: str, paths: list[str]) -> None:
        """
        Delete objects by path (relative to bucket).

        Raises:
            StorageError: if the remove call fails.
        """
        if not paths:
            return
        try:
            self.client.storage.from_(bucket).remove(paths)
        except Exception as exc:
            logger.error("Remove from %s failed for %s: %s", bucket, paths, exc, extra={"bucket": bucket})
            raise StorageError("Error al eliminar el archivo") from exc

    def remove_reference(self, value: str | None, default_bucket: str) -> bool:
        """
        Delete the object behind a stored URL or bare path.

        The bucket is taken from the URL when it is one of ours
        (legacy course buckets included); bare paths use `default_bucket`.
        URLs outside storage (placeholder avatars) are left alone.

        Returns:
            False if there was nothing to delete.

        Raises:
            StorageError: if the remove call fails.
        """
        if not value:
            return False

        parsed = parse_public_url(value)
        bucket = default_bucket
        if parsed is not None:
            bucket = parsed[0]
            if bucket not in KNOWN_BUCKETS:
                logger.warning("Not removing %s: bucket %s is not managed here", value, bucket)
                return False

        candidates = removal_candidates(value, bucket)
        if not candidates:
            return False
        self.remove(bucket, candidates)
        return True
