"""Delete expired access tokens and spent or expired one-time tokens."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from app.core.config import settings  # noqa: E402
from app.core.logging import setup_logging  # noqa: E402
from app.db.session import SessionLocal  # noqa: E402
from app.services.tokens import cleanup_expired_tokens  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge expired session, reset and verification tokens")
    parser.add_argument("--dry-run", action="store_true", help="Only count matching rows, delete nothing")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        counts = cleanup_expired_tokens(db, dry_run=args.dry_run)
    finally:
        db.close()

    label = "would delete" if args.dry_run else "deleted"
    for table, count in counts.items():
        print(f"[{label}] {table}={count}")
    print(f"[done] total={sum(counts.values())}")


if __name__ == "__main__":
    main()
