"""
Delete sessions that expired more than SESSION_RETENTION_DAYS ago.

Meant for cron, e.g. nightly:
  30 3 * * * cd /srv/paydesk && .venv/bin/python -m paydesk.session_cleanup
Pass --retention-days to override the configured window for one run.
"""

import argparse
import logging
import sys

from paydesk.core.config import get_settings
from paydesk.core.database import SessionLocal
from paydesk.services.session_cleanup import run_session_cleanup

logger = logging.getLogger("paydesk.session_cleanup")


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Purge long-expired paydesk sessions.")
    parser.add_argument(
        "--retention-days",
        type=_positive_int,
        default=None,
        help="Keep expired sessions this many days (default: SESSION_RETENTION_DAYS)",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.retention_days is not None:
        settings = settings.model_copy(update={"SESSION_RETENTION_DAYS": args.retention_days})

    with SessionLocal() as db:
        try:
            deleted = run_session_cleanup(db, settings)
        except Exception:
            logger.exception("Session cleanup failed")
            return 1
    logger.info(
        "Session cleanup finished: sessions_deleted=%s retention_days=%s",
        deleted,
        settings.SESSION_RETENTION_DAYS,
    )
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    sys.exit(main())
