# app/provisioning/cli.py
import logging

from supabase import Client

from app.core.config import ProvisioningSettings
from app.core.exceptions import StorageError
from app.core.supabase_client import service_client
from app.provisioning.storage import BucketPolicy, ensure_bucket

logger = logging.getLogger(__name__)


def client_from_env() -> Client | None:
    """
    Service-role client built from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY.

    Returns None (after logging what is missing) when either is unset.
    """
    settings = ProvisioningSettings()
    missing = settings.missing()
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        logger.error("Set them in .env (Supabase project settings > API).")
        return None
    return service_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def run_setup(policy: BucketPolicy) -> int:
    """Create/configure one bucket; returns the process exit code."""
    client = client_from_env()
    if client is None:
        return 1

    try:
        created = ensure_bucket(client, policy)
    except StorageError as exc:
        logger.error("Storage setup failed: %s", exc.message)
        return 1

    logger.info(
        "Bucket %s %s (public=%s, limit=%s bytes)",
        policy.name,
        "created" if created else "ready",
        policy.public,
        policy.file_size_limit,
    )
    return 0
