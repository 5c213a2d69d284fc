from datetime import datetime, timedelta, timezone
from decimal import Decimal

from boxoffice.models.event import Event, TicketCategory


def make_event(db, title="Jazz Night", slug=None, days_ahead=7, base_price=None, categories=(), currency="USD"):
    """Persist an active event and its (name, price, capacity) categories."""
    event = Event(
        slug=slug or title.lower().replace(" ", "-"),
        title=title,
        location="Main Room",
        event_start=datetime.now(timezone.utc) + timedelta(days=days_ahead),
        base_ticket_price=base_price,
        ticket_currency=currency,
        is_active=True,
    )
    db.add(event)
    db.flush()
    for name, price, total in categories:
        db.add(TicketCategory(
            event_id=event.id,
            name=name,
            price=Decimal(price),
            currency=currency,
            quantity_total=total,
            quantity_sold=0,
        ))
    db.commit()
    return event
