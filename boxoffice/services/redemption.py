"""Gate redemption: a ticket is admitted at most once."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from boxoffice.domain.credentials import digest_presented
from boxoffice.domain.errors import AlreadyRedeemedError, TicketNotFoundError, TicketVoidedError
from boxoffice.models.base import utcnow
from boxoffice.models.ticket import PurchasedTicket
from boxoffice.services.persistence import persistence_guard

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    ticket_number: str
    customer_name: str
    category_name: str
    redeemed_at: datetime


def get_ticket(db: Session, ticket_id: int) -> PurchasedTicket:
    ticket = db.get(PurchasedTicket, ticket_id, populate_existing=True)
    if ticket is None:
        raise TicketNotFoundError()
    return ticket


def _reject(ticket: PurchasedTicket):
    if ticket.status == "void":
        return TicketVoidedError(ticket.ticket_number)
    return AlreadyRedeemedError(ticket.ticket_number, ticket.redeemed_at)


def redeem(
    db: Session,
    presented: Union[str, Mapping[str, Any]],
    staff_id: Optional[str] = None,
    location: Optional[str] = None,
) -> RedemptionResult:
    """Admit the ticket whose credential was scanned.

    Raises:
        TicketNotFoundError: If no ticket carries this credential.
        AlreadyRedeemedError: If the ticket was admitted before, with the original time.
        TicketVoidedError: If the ticket was voided.
    """
    digest = digest_presented(presented)
    ticket = db.execute(
        select(PurchasedTicket).where(PurchasedTicket.qr_code_hash == digest)
    ).scalar_one_or_none()
    if ticket is None:
        logger.info("Rejected unknown credential %s...", digest[:12])
        raise TicketNotFoundError()
    if ticket.status != "valid":
        logger.info("Rejected %s ticket %s", ticket.status, ticket.ticket_number)
        raise _reject(ticket)

    now = utcnow()
    with persistence_guard(db, "purchased ticket", "redeem"):
        result = db.execute(
            update(PurchasedTicket)
            .where(PurchasedTicket.id == ticket.id)
            .where(PurchasedTicket.status == "valid")
            .values(
                status="redeemed",
                redeemed_at=now,
                redeemed_by=staff_id,
                redemption_location=location,
            )
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1
        if won:
            db.commit()
        else:
            db.rollback()

    ticket = get_ticket(db, ticket.id)
    if not won:
        logger.info("Ticket %s was redeemed concurrently", ticket.ticket_number)
        raise _reject(ticket)

    logger.info("Ticket %s redeemed by %s at %s", ticket.ticket_number, staff_id or "-", location or "-")
    return RedemptionResult(
        ticket_number=ticket.ticket_number,
        customer_name=ticket.customer_name,
        category_name=ticket.ticket_type_name,
        redeemed_at=ticket.redeemed_at,
    )


def void_ticket(db: Session, ticket_id: int) -> PurchasedTicket:
    with persistence_guard(db, "purchased ticket", "void"):
        result = db.execute(
            update(PurchasedTicket)
            .where(PurchasedTicket.id == ticket_id)
            .where(PurchasedTicket.status == "valid")
            .values(status="void")
            .execution_options(synchronize_session=False)
        )
        voided = result.rowcount == 1
        if voided:
            db.commit()
        else:
            db.rollback()

    ticket = get_ticket(db, ticket_id)
    if not voided:
        raise _reject(ticket)
    logger.info("Ticket %s voided", ticket.ticket_number)
    return ticket
