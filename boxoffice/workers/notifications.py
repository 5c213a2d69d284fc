"""Outbox delivery worker.

    python -m boxoffice.workers.notifications
"""

import logging
import time

from boxoffice.core.app_logger import setup_logging
from boxoffice.core.config import settings
from boxoffice.database import SessionLocal
from boxoffice.domain.errors import PersistenceError
from boxoffice.services.notifications import DeliveryReport, deliver_pending

logger = logging.getLogger(__name__)


def run_once(limit: int = 20) -> DeliveryReport:
    db = SessionLocal()
    try:
        report = deliver_pending(db, limit=limit)
    finally:
        db.close()
    if report.sent or report.failed:
        logger.info("Outbox pass: %s sent, %s failed", report.sent, report.failed)
    return report


def main() -> None:
    setup_logging()
    logger.info("Notification worker polling every %ss", settings.OUTBOX_POLL_SECONDS)
    while True:
        try:
            run_once()
        except PersistenceError:
            logger.error("Outbox pass failed, retrying in %ss", settings.OUTBOX_POLL_SECONDS)
        time.sleep(settings.OUTBOX_POLL_SECONDS)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Notification worker stopped")
