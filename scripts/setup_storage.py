# scripts/setup_storage.py
"""
Create and configure the profile-pictures bucket.

Public, JPEG/PNG/GIF/WEBP only, 5MB per file.

Usage:
    python scripts/setup_storage.py
"""
import sys

from app.core.logging import configure_logging
from app.provisioning.cli import run_setup
from app.provisioning.storage import PROFILE_PICTURES


def main() -> int:
    configure_logging()
    return run_setup(PROFILE_PICTURES)


if __name__ == "__main__":
    sys.exit(main())
