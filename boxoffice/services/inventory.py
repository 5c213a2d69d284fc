"""Inventory ledger: sellable capacity per ticket category.

Capacity is checked (not held) when an order is placed and debited when
tickets are issued. The debit is a single conditional UPDATE so that two
processes selling the last seat cannot both succeed.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.domain.errors import CategoryNotFoundError, EventNotFoundError, InsufficientInventoryError
from boxoffice.domain.value_objects import BASE_CATEGORY_KEY, CategoryRef, ExplicitCategory, SyntheticCategory
from boxoffice.models.event import Event, TicketCategory

logger = logging.getLogger(__name__)


def available_capacity(category: TicketCategory) -> Optional[int]:
    """Seats left in a category, or None when it is unlimited."""
    if category.quantity_total is None:
        return None
    return max(category.quantity_total - (category.quantity_sold or 0), 0)


def ensure_available(category: TicketCategory, quantity: int) -> None:
    available = available_capacity(category)
    if available is not None and quantity > available:
        raise InsufficientInventoryError(category.name, available)


def reserve(db: Session, category: TicketCategory, quantity: int) -> None:
    """Debit ``quantity`` seats from ``category`` inside the caller's transaction.

    Raises:
        InsufficientInventoryError: If fewer than ``quantity`` seats remain.
    """
    if quantity <= 0:
        raise ValueError("Quantity must be a positive integer")

    stmt = (
        update(TicketCategory)
        .where(TicketCategory.id == category.id)
        .where(
            or_(
                TicketCategory.quantity_total.is_(None),
                TicketCategory.quantity_sold + quantity <= TicketCategory.quantity_total,
            )
        )
        .values(quantity_sold=TicketCategory.quantity_sold + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    # the in-session copy is stale either way
    db.expire(category, ["quantity_sold"])

    if result.rowcount != 1:
        db.refresh(category)
        available = available_capacity(category) or 0
        logger.info(
            "Reservation of %s x %s rejected, %s left",
            quantity, category.name, available,
        )
        raise InsufficientInventoryError(category.name, available)


def find_base_category(db: Session, event: Event) -> Optional[TicketCategory]:
    return db.execute(
        select(TicketCategory)
        .where(TicketCategory.event_id == event.id)
        .where(TicketCategory.name == settings.BASE_CATEGORY_NAME)
    ).scalar_one_or_none()


def materialize_base_category(db: Session, event: Event) -> TicketCategory:
    """Find or create the real row behind an event's flat-price category."""
    existing = find_base_category(db, event)
    if existing is not None:
        return existing

    if event.base_ticket_price is None:
        raise CategoryNotFoundError("base", "Base ticket price not set for this event")

    category = TicketCategory(
        event_id=event.id,
        name=settings.BASE_CATEGORY_NAME,
        price=event.base_ticket_price,
        currency=event.ticket_currency,
        quantity_total=None,
        quantity_sold=0,
    )
    try:
        with db.begin_nested():
            db.add(category)
    except IntegrityError:
        # another issuance created it first
        logger.info("Base category for event %s created concurrently, reusing it", event.id)
        return db.execute(
            select(TicketCategory)
            .where(TicketCategory.event_id == event.id)
            .where(TicketCategory.name == settings.BASE_CATEGORY_NAME)
        ).scalar_one()

    logger.info("Materialized base category %s for event %s", category.id, event.id)
    return category


def resolve_category(db: Session, event: Event, ref: CategoryRef) -> TicketCategory:
    """Turn a CategoryRef into a persisted TicketCategory of ``event``."""
    if isinstance(ref, SyntheticCategory):
        return materialize_base_category(db, event)

    if isinstance(ref, ExplicitCategory):
        category = db.get(TicketCategory, ref.id)
        if category is None or category.event_id != event.id:
            raise CategoryNotFoundError(ref.id)
        return category

    raise TypeError(f"Unsupported category reference {ref!r}")


@dataclass
class CategoryAvailability:
    key: Union[int, str]
    name: str
    price: Decimal
    currency: str
    quantity_total: Optional[int]
    quantity_sold: int
    available: Optional[int]


def event_availability(db: Session, event_id: int) -> tuple[Event, list[CategoryAvailability]]:
    """Sellable categories of an event, including its flat-price category."""
    event = db.get(Event, event_id)
    if event is None or not event.is_active:
        raise EventNotFoundError(event_id)

    categories = list(
        db.execute(
            select(TicketCategory).where(TicketCategory.event_id == event.id).order_by(TicketCategory.id)
        ).scalars().all()
    )
    rows = [
        CategoryAvailability(
            key=c.id,
            name=c.name,
            price=c.price,
            currency=c.currency,
            quantity_total=c.quantity_total,
            quantity_sold=c.quantity_sold or 0,
            available=available_capacity(c),
        )
        for c in categories
    ]
    has_base = any(c.name == settings.BASE_CATEGORY_NAME for c in categories)
    if not has_base and event.base_ticket_price is not None:
        rows.append(CategoryAvailability(
            key=BASE_CATEGORY_KEY,
            name=settings.BASE_CATEGORY_NAME,
            price=event.base_ticket_price,
            currency=event.ticket_currency,
            quantity_total=None,
            quantity_sold=0,
            available=None,
        ))
    return event, rows
