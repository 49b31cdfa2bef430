# scripts/check_storage.py
"""
List existing buckets and make sure profile-pictures exists.

Usage:
    python scripts/check_storage.py
"""
import logging
import sys

from app.core.exceptions import StorageError
from app.core.logging import configure_logging
from app.provisioning.cli import client_from_env
from app.provisioning.storage import PROFILE_PICTURES, ensure_bucket, list_bucket_names

logger = logging.getLogger("check_storage")


def main() -> int:
    configure_logging()
    client = client_from_env()
    if client is None:
        return 1

    try:
        names = list_bucket_names(client)
        logger.info("Existing buckets: %s", ", ".join(names) or "none")
        ensure_bucket(client, PROFILE_PICTURES)
    except StorageError as exc:
        logger.error("Storage check failed: %s", exc.message)
        return 1

    logger.info("Storage setup completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
