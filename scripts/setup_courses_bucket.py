# scripts/setup_courses_bucket.py
"""
Create and configure the `cursos` bucket (covers, videos, materials).

Public, images/documents/videos, 1GB per file. If the configuration of
an existing bucket cannot be updated, a warning is logged and the script
still succeeds.

Usage:
    python scripts/setup_courses_bucket.py [--legacy]
"""
import argparse
import sys

from app.core.logging import configure_logging
from app.provisioning.cli import run_setup
from app.provisioning.storage import CURSOS, LEGACY_POLICIES


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--legacy",
        action="store_true",
        help="also configure the old videos/materiales/course-materials buckets",
    )
    args = parser.parse_args(argv)

    configure_logging()
    policies = [CURSOS, *LEGACY_POLICIES] if args.legacy else [CURSOS]
    for policy in policies:
        code = run_setup(policy)
        if code != 0:
            return code
    return 0


if __name__ == "__main__":
    sys.exit(main())
