from sqlalchemy import Boolean, CheckConstraint, Column, BigInteger, DateTime, Numeric, String, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from boxoffice.models.base import Base, BigIntPK, TimestampMixin, utcnow


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    slug = Column(String, unique=True, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    event_start = Column(DateTime(timezone=True), nullable=False)
    event_end = Column(DateTime(timezone=True), nullable=True)
    base_ticket_price = Column(Numeric(precision=10, scale=2), nullable=True)
    ticket_currency = Column(String(3), default="USD", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('base_ticket_price IS NULL OR base_ticket_price >= 0', name='check_base_ticket_price_non_negative'),
    )

    categories = relationship("TicketCategory", back_populates="event", cascade="all, delete-orphan", order_by="TicketCategory.id")
    orders = relationship("TicketOrder", back_populates="event")

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', event_start={self.event_start})>"



class TicketCategory(Base, TimestampMixin):
    __tablename__ = "ticket_categories"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    event_id = Column(BigInteger, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(precision=10, scale=2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    quantity_total = Column(BigInteger, nullable=True)
    quantity_sold = Column(BigInteger, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('event_id', 'name', name='uq_ticket_categories_event_name'),
        CheckConstraint('price >= 0', name='check_ticket_category_price_non_negative'),
        CheckConstraint('quantity_sold >= 0', name='check_quantity_sold_non_negative'),
        CheckConstraint('quantity_total IS NULL OR quantity_sold <= quantity_total', name='check_quantity_sold_within_total'),
    )

    event = relationship("Event", back_populates="categories")
    tickets = relationship("PurchasedTicket", back_populates="category")

    def __repr__(self):
        return f"<TicketCategory(id={self.id}, event_id={self.event_id}, name='{self.name}', sold={self.quantity_sold}/{self.quantity_total})>"
