# app/provisioning/storage.py
"""
Storage bucket provisioning shared by the scripts in `scripts/`.

All calls go through a service-role client; every Supabase failure is
raised as StorageError.
"""

import logging
import time
from dataclasses import dataclass

from supabase import Client

from app.core.exceptions import StorageError
from app.core.storage_utils import BUCKET_CURSOS, BUCKET_PROFILE_PICTURES
from app.services.upload_service import DOCUMENT_TYPES, IMAGE_TYPES, MB, VIDEO_TYPES

logger = logging.getLogger(__name__)

GB = 1024 * MB


@dataclass(frozen=True)
class BucketPolicy:
    """
    Desired configuration of a bucket.

    strict: when True, failing to apply the configuration to an existing
    bucket is an error; otherwise it is only logged.
    """

    name: str
    allowed_mime_types: tuple[str, ...]
    file_size_limit: int
    public: bool = True
    strict: bool = False

    def options(self) -> dict:
        return {
            "public": self.public,
            "allowed_mime_types": list(self.allowed_mime_types),
            "file_size_limit": self.file_size_limit,
        }


PROFILE_PICTURES = BucketPolicy(
    name=BUCKET_PROFILE_PICTURES,
    allowed_mime_types=tuple(IMAGE_TYPES),
    file_size_limit=5 * MB,
    strict=True,
)

CURSOS = BucketPolicy(
    name=BUCKET_CURSOS,
    allowed_mime_types=(
        *IMAGE_TYPES,
        "image/svg+xml",
        *DOCUMENT_TYPES,
        *VIDEO_TYPES,
        "video/x-msvideo",
        "video/x-ms-wmv",
        "video/x-matroska",
        "video/3gpp",
        "video/3gpp2",
        "video/x-flv",
        "video/x-ms-asf",
    ),
    file_size_limit=1 * GB,
)

# Buckets from earlier versions of the course form.
LEGACY_POLICIES = (
    BucketPolicy(name="videos", allowed_mime_types=tuple(VIDEO_TYPES), file_size_limit=1 * GB),
    BucketPolicy(name="materiales", allowed_mime_types=tuple(DOCUMENT_TYPES), file_size_limit=100 * MB),
    BucketPolicy(
        name="course-materials",
        allowed_mime_types=(*DOCUMENT_TYPES, *VIDEO_TYPES),
        file_size_limit=1 * GB,
    ),
)

POLICIES: dict[str, BucketPolicy] = {p.name: p for p in (PROFILE_PICTURES, CURSOS, *LEGACY_POLICIES)}

# (content, content type, extension) used by the smoke test.
SAMPLE_FILES: tuple[tuple[bytes, str, str], ...] = (
    (b"test", "text/plain", "txt"),
    (b"%PDF-1.4\n%\xe2\xe3\xcf\xd3", "application/pdf", "pdf"),
    (b"<svg></svg>", "image/svg+xml", "svg"),
    (b"RIFF....WEBPVP8 ", "image/webp", "webp"),
    (b"\x89PNG\r\n\x1a\n", "image/png", "png"),
)


@dataclass(frozen=True)
class SmokeResult:
    content_type: str
    path: str
    url: str | None
    ok: bool
    error: str | None = None


def list_bucket_names(client: Client) -> list[str]:
    try:
        buckets = client.storage.list_buckets()
    except Exception as exc:
        raise StorageError(f"Error al listar los buckets: {exc}") from exc
    return [bucket.name for bucket in buckets]


def ensure_bucket(client: Client, policy: BucketPolicy) -> bool:
    """
    Create the bucket if missing, then apply the policy to it.

    Returns:
        True if the bucket was created, False if it already existed.

    Raises:
        StorageError: listing/creation failed, or (strict policies) the
            configuration could not be applied.
    """
    created = False
    if policy.name not in list_bucket_names(client):
        logger.info("Creating bucket %s", policy.name, extra={"bucket": policy.name})
        try:
            client.storage.create_bucket(policy.name, options=policy.options())
            created = True
        except Exception as exc:
            if "already exists" not in str(exc).lower():
                raise StorageError(f"Error al crear el bucket {policy.name}: {exc}") from exc
            logger.info("Bucket %s was created concurrently", policy.name)
    else:
        logger.info("Bucket %s already exists", policy.name, extra={"bucket": policy.name})

    try:
        client.storage.update_bucket(policy.name, policy.options())
        logger.info("Bucket %s configured (public=%s)", policy.name, policy.public)
    except Exception as exc:
        if policy.strict:
            raise StorageError(f"Error al configurar el bucket {policy.name}: {exc}") from exc
        logger.warning(
            "Could not update bucket %s configuration: %s. The bucket still works; "
            "review its settings in the Supabase dashboard.",
            policy.name,
            exc,
        )

    return created


def verify_bucket(client: Client, bucket: str) -> list[SmokeResult]:
    """
    Smoke test: upload -> public URL -> remove, for each sample type the
    bucket accepts.

    Raises:
        StorageError: the bucket does not exist.
    """
    if bucket not in list_bucket_names(client):
        raise StorageError(f"El bucket '{bucket}' no existe; ejecuta scripts/setup_storage.py")

    policy = POLICIES.get(bucket)
    results: list[SmokeResult] = []
    for content, content_type, ext in SAMPLE_FILES:
        if policy is not None and content_type not in policy.allowed_mime_types:
            continue

        path = f"test/test-{int(time.time() * 1000)}.{ext}"
        store = client.storage.from_(bucket)
        try:
            store.upload(path, content, file_options={"content-type": content_type, "cache-control": "3600", "upsert": "false"})
            url = store.get_public_url(path)
            store.remove([path])
        except Exception as exc:
            logger.error("Smoke test failed for %s in %s: %s", content_type, bucket, exc)
            results.append(SmokeResult(content_type, path, None, ok=False, error=str(exc)))
            continue

        results.append(SmokeResult(content_type, path, url, ok=True))
    return results
