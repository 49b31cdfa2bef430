# scripts/verify_storage.py
"""
Storage smoke test: upload, resolve the public URL and delete a small
file of each type the bucket accepts.

Usage:
    python scripts/verify_storage.py [--bucket profile-pictures]
"""
import argparse
import logging
import sys

from app.core.exceptions import StorageError
from app.core.logging import configure_logging
from app.core.storage_utils import BUCKET_PROFILE_PICTURES
from app.provisioning.cli import client_from_env
from app.provisioning.storage import verify_bucket

logger = logging.getLogger("verify_storage")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Storage smoke test")
    parser.add_argument("--bucket", default=BUCKET_PROFILE_PICTURES)
    args = parser.parse_args(argv)

    configure_logging()
    client = client_from_env()
    if client is None:
        return 1

    try:
        results = verify_bucket(client, args.bucket)
    except StorageError as exc:
        logger.error("%s", exc.message)
        return 1

    for result in results:
        if result.ok:
            logger.info("OK   %s -> %s", result.content_type, result.url)
        else:
            logger.error("FAIL %s: %s", result.content_type, result.error)

    if not results or not all(r.ok for r in results):
        logger.error("Storage verification failed for bucket %s", args.bucket)
        return 1

    logger.info("Storage verification passed for bucket %s", args.bucket)
    return 0


if __name__ == "__main__":
    sys.exit(main())
