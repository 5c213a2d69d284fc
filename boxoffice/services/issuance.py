"""Ticket issuance: mint one credential per purchased seat, exactly once per order.

Everything in ``issue_tickets`` happens in one transaction: the issuance
claim on the order, the ledger debit, the ticket rows, removal of the pending
selection and the delivery message. A failure anywhere leaves the order paid
and ticketless, and calling ``issue_tickets`` again is safe.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.core.identifiers import epoch_millis, generate_reference
from boxoffice.domain import credentials
from boxoffice.domain.errors import (
    AlreadyIssuedError,
    AlreadyPaidError,
    CategoryNotFoundError,
    DomainError,
    InsufficientInventoryError,
    OrderNotPaidError,
    PersistenceError,
    SelectionNotFoundError,
    SoldOutError,
)
from boxoffice.domain.value_objects import SelectionLine, SyntheticCategory, quantize_money
from boxoffice.models.base import utcnow
from boxoffice.models.event import TicketCategory
from boxoffice.models.order import PendingSelection, TicketOrder
from boxoffice.models.ticket import PurchasedTicket
from boxoffice.services import inventory, notifications
from boxoffice.services.orders import get_order, mark_paid

logger = logging.getLogger(__name__)

TICKET_NUMBER_ATTEMPTS = 5


@dataclass
class IssuanceResult:
    order: TicketOrder
    tickets: list[PurchasedTicket]
    newly_issued: bool


def tickets_for_order(db: Session, order_id: int) -> list[PurchasedTicket]:
    return list(
        db.execute(
            select(PurchasedTicket)
            .where(PurchasedTicket.ticket_order_id == order_id)
            .order_by(PurchasedTicket.id)
        ).scalars().all()
    )


def load_selection(db: Session, order: TicketOrder) -> list[SelectionLine]:
    """The order's priced selection, or a lossy reconstruction from its total."""
    selection = db.execute(
        select(PendingSelection).where(PendingSelection.ticket_order_id == order.id)
    ).scalar_one_or_none()
    if selection is not None and selection.ticket_selection:
        return [SelectionLine.from_json(item, order.event_id) for item in selection.ticket_selection]

    event = order.event
    base_price = event.base_ticket_price
    if base_price and base_price > 0 and order.total_amount:
        quantity = int((Decimal(order.total_amount) / Decimal(base_price)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        if quantity > 0:
            logger.warning(
                "Order %s has no stored selection; reconstructed %s x %s from total %s / base price %s",
                order.order_number, quantity, settings.BASE_CATEGORY_NAME, order.total_amount, base_price,
            )
            return [
                SelectionLine(
                    category=SyntheticCategory(event_id=event.id),
                    quantity=quantity,
                    unit_price=quantize_money(base_price),
                    name=settings.BASE_CATEGORY_NAME,
                )
            ]

    raise SelectionNotFoundError(order.id)


def _unique_ticket_number(db: Session, taken: set[str]) -> str:
    for _ in range(TICKET_NUMBER_ATTEMPTS):
        number = generate_reference(settings.TICKET_NUMBER_PREFIX)
        if number in taken:
            continue
        clash = db.execute(
            select(PurchasedTicket.id).where(PurchasedTicket.ticket_number == number)
        ).first()
        if clash is None:
            taken.add(number)
            return number
    raise PersistenceError("purchased ticket", "allocate ticket number for")


def _mint(db: Session, order: TicketOrder, category: TicketCategory, line: SelectionLine, taken: set[str]) -> PurchasedTicket:
    ticket_uid = str(uuid4())
    ticket_number = _unique_ticket_number(db, taken)
    payload = credentials.build_payload(
        ticket_uid=ticket_uid,
        order_id=order.id,
        event_id=order.event_id,
        ticket_number=ticket_number,
        issued_at_ms=epoch_millis(utcnow()),
    )
    serialized = credentials.serialize_payload(payload)

    ticket = PurchasedTicket(
        ticket_uid=ticket_uid,
        ticket_order_id=order.id,
        event_ticket_id=category.id,
        ticket_number=ticket_number,
        qr_code_data=serialized,
        qr_code_hash=credentials.digest(serialized),
        status="valid",
        customer_name=order.customer_name,
        ticket_type_name=category.name,
        price_paid=line.unit_price,
    )
    db.add(ticket)
    return ticket


def _claim(db: Session, order_id: int) -> bool:
    result = db.execute(
        update(TicketOrder)
        .where(TicketOrder.id == order_id)
        .where(TicketOrder.payment_status == "paid")
        .where(TicketOrder.tickets_issued_at.is_(None))
        .values(tickets_issued_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def issue_tickets(db: Session, order_id: int) -> IssuanceResult:
    """Mint the tickets of a paid order.

    Raises:
        OrderNotFoundError: If the order does not exist.
        OrderNotPaidError: If the order has not been paid.
        AlreadyIssuedError: If an earlier call already minted this order's tickets.
        SoldOutError: If a category ran out between order and issuance.
        SelectionNotFoundError: If the selection is gone and cannot be rebuilt.
    """
    order = get_order(db, order_id)
    if not order.is_paid:
        raise OrderNotPaidError(order_id)

    try:
        if not _claim(db, order_id):
            db.rollback()
            raise AlreadyIssuedError(order_id)

        lines = load_selection(db, order)
        taken: set[str] = set()
        tickets: list[PurchasedTicket] = []
        for line in lines:
            try:
                category = inventory.resolve_category(db, order.event, line.category)
            except CategoryNotFoundError as exc:
                raise SelectionNotFoundError(order.id, f"Ticket type {exc.category} no longer belongs to this event") from None
            try:
                inventory.reserve(db, category, line.quantity)
            except InsufficientInventoryError:
                raise SoldOutError(category.name, line.quantity) from None
            tickets.extend(_mint(db, order, category, line, taken) for _ in range(line.quantity))

        db.execute(delete(PendingSelection).where(PendingSelection.ticket_order_id == order.id))
        notifications.enqueue_ticket_delivery(db, order, tickets)
        db.commit()
    except AlreadyIssuedError:
        raise
    except SoldOutError as exc:
        db.rollback()
        logger.error(
            "RECONCILIATION REQUIRED: order %s is paid (%s via %s) but %s is sold out; no tickets issued",
            order.order_number, order.payment_transaction_id, order.payment_method, exc.category_name,
        )
        raise
    except DomainError:
        db.rollback()
        logger.error("Ticket issuance for paid order %s failed", order.order_number)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database error while issuing tickets for order %s", order.order_number)
        raise PersistenceError("purchased ticket", "issue") from exc

    logger.info("Issued %s ticket(s) for order %s", len(tickets), order.order_number)
    return IssuanceResult(order=get_order(db, order_id), tickets=tickets, newly_issued=True)


def ensure_tickets_issued(db: Session, order_id: int) -> IssuanceResult:
    """``issue_tickets`` with AlreadyIssued answered by the existing tickets."""
    try:
        return issue_tickets(db, order_id)
    except AlreadyIssuedError:
        logger.info("Tickets for order %s already issued, returning existing set", order_id)
        return IssuanceResult(
            order=get_order(db, order_id),
            tickets=tickets_for_order(db, order_id),
            newly_issued=False,
        )


@dataclass
class CompletedPurchase:
    order: TicketOrder
    tickets: list[PurchasedTicket]
    redirect_target: str


def complete_purchase(db: Session, order_id: int, transaction_id: str, payment_method: str) -> CompletedPurchase:
    """Record an already-settled payment and mint the order's tickets.

    Safe to repeat: a second call finds the order paid and its tickets issued
    and returns them unchanged.
    """
    try:
        mark_paid(db, order_id, payment_method, transaction_id)
    except AlreadyPaidError:
        logger.info("Order %s already paid, continuing to issuance", order_id)

    result = ensure_tickets_issued(db, order_id)
    order = result.order
    return CompletedPurchase(
        order=order,
        tickets=result.tickets,
        redirect_target=f"/events/{order.event.slug}/tickets/{order.id}",
    )
