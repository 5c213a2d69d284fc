from boxoffice.models.event import Event, TicketCategory
from boxoffice.models.order import TicketOrder, PendingSelection, PaymentRecord
from boxoffice.models.ticket import PurchasedTicket
from boxoffice.models.outbox import NotificationOutbox


__all__ = [
    "Event",
    "TicketCategory",
    "TicketOrder",
    "PendingSelection",
    "PaymentRecord",
    "PurchasedTicket",
    "NotificationOutbox",
]
