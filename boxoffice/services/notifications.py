"""Transactional outbox for ticket-delivery messages.

Messages are written in the same transaction as the tickets they describe
and delivered afterwards by ``deliver_pending``, which the API runs as a
background task and ``boxoffice.workers.notifications`` runs on a loop.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.core.email import send_ticket_email
from boxoffice.models.base import utcnow
from boxoffice.models.order import TicketOrder
from boxoffice.models.outbox import NotificationOutbox
from boxoffice.models.ticket import PurchasedTicket
from boxoffice.services.persistence import persistence_guard

logger = logging.getLogger(__name__)

TICKET_DELIVERY = "ticket_delivery"

Sender = Callable[[str, dict], bool]


@dataclass
class DeliveryReport:
    sent: int = 0
    failed: int = 0


def enqueue(db: Session, kind: str, aggregate_id: int, payload: dict, dedupe_key: str) -> None:
    """Add an outbox row inside the caller's transaction. Duplicate keys are ignored."""
    existing = db.execute(
        select(NotificationOutbox.id).where(NotificationOutbox.dedupe_key == dedupe_key)
    ).first()
    if existing:
        return

    db.add(
        NotificationOutbox(
            kind=kind,
            aggregate_id=aggregate_id,
            payload=payload,
            dedupe_key=dedupe_key,
            status="pending",
            attempts=0,
        )
    )


def enqueue_ticket_delivery(db: Session, order: TicketOrder, tickets: list[PurchasedTicket]) -> None:
    event = order.event
    payload = {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "customerName": order.customer_name,
        "customerEmail": order.customer_email,
        "eventTitle": event.title,
        "eventStart": event.event_start.isoformat(),
        "eventLocation": event.location,
        "tickets": [
            {
                "ticketNumber": ticket.ticket_number,
                "ticketType": ticket.ticket_type_name,
                "credential": ticket.qr_code_data,
            }
            for ticket in tickets
        ],
    }
    enqueue(db, TICKET_DELIVERY, order.id, payload, dedupe_key=f"{TICKET_DELIVERY}:{order.id}")


def _default_sender(kind: str, payload: dict) -> bool:
    if kind == TICKET_DELIVERY:
        return send_ticket_email(payload["customerEmail"], payload)
    logger.warning("No sender registered for outbox kind %s", kind)
    return False


def deliver_pending(db: Session, sender: Sender = _default_sender, limit: int = 20) -> DeliveryReport:
    """Deliver up to ``limit`` pending messages. Never raises for a failed send."""
    report = DeliveryReport()
    max_attempts = settings.OUTBOX_MAX_ATTEMPTS

    with persistence_guard(db, "notification", "load pending"):
        rows = db.execute(
            select(NotificationOutbox)
            .where(NotificationOutbox.status == "pending")
            .where(NotificationOutbox.attempts < max_attempts)
            .order_by(NotificationOutbox.created_at, NotificationOutbox.id)
            .limit(limit)
        ).scalars().all()
        pending = [(row.id, row.kind, row.payload, row.attempts) for row in rows]
        db.rollback()

    for row_id, kind, payload, attempts in pending:
        attempt = attempts + 1
        with persistence_guard(db, "notification", "claim"):
            claimed = db.execute(
                update(NotificationOutbox)
                .where(NotificationOutbox.id == row_id)
                .where(NotificationOutbox.status == "pending")
                .where(NotificationOutbox.attempts == attempts)
                .values(attempts=attempt)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
        if not claimed:
            continue

        error = None
        try:
            delivered = sender(kind, payload)
        except Exception as exc:
            logger.exception("Outbox message %s raised during delivery", row_id)
            delivered, error = False, str(exc)

        if delivered:
            values = {"status": "sent", "sent_at": utcnow(), "last_error": None}
            report.sent += 1
        else:
            values = {
                "status": "failed" if attempt >= max_attempts else "pending",
                "last_error": error or "delivery failed",
            }
            report.failed += 1
            logger.warning("Outbox message %s not delivered (attempt %s/%s)", row_id, attempt, max_attempts)

        with persistence_guard(db, "notification", "record delivery of"):
            db.execute(
                update(NotificationOutbox)
                .where(NotificationOutbox.id == row_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()

    return report
