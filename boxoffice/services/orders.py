"""Order aggregate: purchase intent, priced snapshot and payment state.

pending/unpaid --mark_paid--> confirmed/paid
pending/unpaid --cancel_order--> cancelled/unpaid
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.core.identifiers import generate_reference
from boxoffice.domain.errors import (
    AlreadyPaidError,
    CategoryNotFoundError,
    EventInPastError,
    EventNotFoundError,
    InvalidPaymentError,
    MissingCustomerFieldsError,
    OrderCancelledError,
    OrderNotFoundError,
    PersistenceError,
)
from boxoffice.domain.value_objects import (
    CustomerSnapshot,
    ExplicitCategory,
    SelectionLine,
    SyntheticCategory,
    parse_category_ref,
    quantize_money,
)
from boxoffice.models.base import as_utc, utcnow
from boxoffice.models.event import Event, TicketCategory
from boxoffice.models.order import PendingSelection, TicketOrder
from boxoffice.services import inventory
from boxoffice.services.persistence import persistence_guard

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


@dataclass
class OrderPlacement:
    order: TicketOrder
    lines: list[SelectionLine]

    @property
    def payment_required(self) -> bool:
        return self.order.total_amount > 0


def _check_customer(customer: CustomerSnapshot) -> CustomerSnapshot:
    missing = []
    if not (customer.name or "").strip():
        missing.append("name")
    if not (customer.email or "").strip():
        missing.append("email")
    if missing:
        raise MissingCustomerFieldsError(missing)
    phone = (customer.phone or "").strip() or None
    return CustomerSnapshot(name=customer.name.strip(), email=customer.email.strip(), phone=phone)


def _price_line(db: Session, event: Event, raw_category, quantity: int) -> tuple[SelectionLine, Optional[TicketCategory]]:
    try:
        ref = parse_category_ref(raw_category, event.id)
    except ValueError:
        raise CategoryNotFoundError(raw_category) from None

    if isinstance(ref, SyntheticCategory):
        if event.base_ticket_price is None:
            raise CategoryNotFoundError("base", "Base ticket price not set for this event")
        # once materialized, later purchases point at the real row
        materialized = inventory.find_base_category(db, event)
        if materialized is not None:
            ref = ExplicitCategory(id=materialized.id)
            return SelectionLine(ref, quantity, quantize_money(materialized.price), materialized.name), materialized
        return SelectionLine(ref, quantity, quantize_money(event.base_ticket_price), settings.BASE_CATEGORY_NAME), None

    category = inventory.resolve_category(db, event, ref)
    return SelectionLine(ref, quantity, quantize_money(category.price), category.name), category


def create_order(
    db: Session,
    event_id: int,
    line_items: Iterable[tuple[object, int]],
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
) -> OrderPlacement:
    """Validate a ticket selection and persist a pending, unpaid order.

    Capacity is only checked here; it is debited when tickets are issued.

    Raises:
        MissingCustomerFieldsError, EventNotFoundError, EventInPastError,
        CategoryNotFoundError, InsufficientInventoryError
    """
    customer = _check_customer(customer)
    now = now or utcnow()

    event = db.get(Event, event_id)
    if event is None or not event.is_active:
        raise EventNotFoundError(event_id)
    if as_utc(event.event_start) < as_utc(now):
        raise EventInPastError(event_id)

    lines: list[SelectionLine] = []
    requested: dict[int, int] = {}
    categories: dict[int, TicketCategory] = {}
    for raw_category, quantity in line_items:
        line, category = _price_line(db, event, raw_category, quantity)
        lines.append(line)
        if category is not None:
            categories[category.id] = category
            requested[category.id] = requested.get(category.id, 0) + quantity

    if not lines:
        raise CategoryNotFoundError(None, "Select at least one ticket")

    for category_id, quantity in requested.items():
        inventory.ensure_available(categories[category_id], quantity)

    total = quantize_money(sum((line.subtotal for line in lines), Decimal("0")))

    order = _insert_order(db, event, customer, total)
    with persistence_guard(db, "ticket order", "create"):
        db.add(PendingSelection(
            ticket_order_id=order.id,
            ticket_selection=[line.to_json() for line in lines],
        ))
        db.commit()

    logger.info(
        "Order %s created for event %s: %s ticket(s), total %s %s",
        order.order_number, event.id, sum(line.quantity for line in lines), total, order.currency,
    )
    return OrderPlacement(order=order, lines=lines)


def _insert_order(db: Session, event: Event, customer: CustomerSnapshot, total: Decimal) -> TicketOrder:
    with persistence_guard(db, "ticket order", "create"):
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            order = TicketOrder(
                order_number=generate_reference(settings.ORDER_NUMBER_PREFIX),
                event_id=event.id,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                total_amount=total,
                currency=event.ticket_currency or settings.DEFAULT_CURRENCY,
                status="pending",
                payment_status="unpaid",
            )
            try:
                with db.begin_nested():
                    db.add(order)
                return order
            except IntegrityError:
                logger.warning("Order number %s collided, generating another", order.order_number)

    db.rollback()
    raise PersistenceError("ticket order", "allocate order number for")


def get_order(db: Session, order_id: int) -> TicketOrder:
    order = db.get(TicketOrder, order_id, populate_existing=True)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def mark_paid(db: Session, order_id: int, payment_method: str, transaction_id: str) -> TicketOrder:
    """Flip an order from pending/unpaid to confirmed/paid exactly once.

    Raises:
        AlreadyPaidError: If another call got there first.
        OrderCancelledError: If the order was cancelled.
        OrderNotFoundError: If the order does not exist.
        InvalidPaymentError: If the transaction already settled a different order.
    """
    now = utcnow()
    stmt = (
        update(TicketOrder)
        .where(TicketOrder.id == order_id)
        .where(TicketOrder.payment_status == "unpaid")
        .where(TicketOrder.status == "pending")
        .values(
            payment_status="paid",
            status="confirmed",
            payment_method=payment_method,
            payment_transaction_id=transaction_id,
            paid_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    with persistence_guard(db, "ticket order", "mark paid"):
        try:
            result = db.execute(stmt)
        except IntegrityError:
            db.rollback()
            logger.error("Transaction %s already settled another order, refusing it for order %s", transaction_id, order_id)
            raise InvalidPaymentError(f"Transaction {transaction_id} already settled another order") from None
        if result.rowcount == 1:
            db.commit()
            logger.info("Order %s marked paid via %s (%s)", order_id, payment_method, transaction_id)
            return get_order(db, order_id)
        db.rollback()

    order = get_order(db, order_id)
    if order.is_paid:
        raise AlreadyPaidError(order_id)
    raise OrderCancelledError(order_id)


def cancel_order(db: Session, order_id: int) -> TicketOrder:
    """Cancel an order that was never paid. Capacity was never debited, so nothing is restocked."""
    now = utcnow()
    with persistence_guard(db, "ticket order", "cancel"):
        result = db.execute(
            update(TicketOrder)
            .where(TicketOrder.id == order_id)
            .where(TicketOrder.payment_status == "unpaid")
            .where(TicketOrder.status == "pending")
            .values(status="cancelled", updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.execute(delete(PendingSelection).where(PendingSelection.ticket_order_id == order_id))
            db.commit()
            logger.info("Order %s cancelled", order_id)
            return get_order(db, order_id)
        db.rollback()

    order = get_order(db, order_id)
    if order.is_paid:
        raise AlreadyPaidError(order_id)
    return order
