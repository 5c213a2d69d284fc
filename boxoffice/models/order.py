from sqlalchemy import JSON, CheckConstraint, Column, BigInteger, DateTime, Numeric, String, ForeignKey
from sqlalchemy.orm import relationship
from boxoffice.models.base import Base, BigIntPK, TimestampMixin, utcnow


ORDER_STATUSES = ("pending", "confirmed", "cancelled")
PAYMENT_STATUSES = ("unpaid", "paid")


class TicketOrder(Base, TimestampMixin):
    __tablename__ = "ticket_orders"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    event_id = Column(BigInteger, ForeignKey("events.id", ondelete="RESTRICT"), nullable=False, index=True)

    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    customer_phone = Column(String, nullable=True)

    total_amount = Column(Numeric(precision=10, scale=2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    status = Column(String, default="pending", nullable=False, index=True)
    payment_status = Column(String, default="unpaid", nullable=False, index=True)
    payment_method = Column(String, nullable=True)
    payment_transaction_id = Column(String, nullable=True, unique=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    tickets_issued_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_order_total_non_negative'),
        CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name='check_order_status'),
        CheckConstraint("payment_status IN ('unpaid', 'paid')", name='check_order_payment_status'),
        CheckConstraint("status != 'confirmed' OR payment_status = 'paid'", name='check_confirmed_orders_paid'),
    )

    event = relationship("Event", back_populates="orders")
    selection = relationship("PendingSelection", back_populates="order", uselist=False, cascade="all, delete-orphan")
    tickets = relationship("PurchasedTicket", back_populates="order", order_by="PurchasedTicket.id")
    payments = relationship("PaymentRecord", back_populates="order")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    def __repr__(self):
        return f"<TicketOrder(id={self.id}, order_number='{self.order_number}', status='{self.status}', payment_status='{self.payment_status}')>"



class PendingSelection(Base, TimestampMixin):
    __tablename__ = "ticket_order_selections"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    ticket_order_id = Column(BigInteger, ForeignKey("ticket_orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    ticket_selection = Column(JSON, nullable=False)

    order = relationship("TicketOrder", back_populates="selection")

    def __repr__(self):
        return f"<PendingSelection(order_id={self.ticket_order_id}, lines={len(self.ticket_selection or [])})>"



class PaymentRecord(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    ticket_order_id = Column(BigInteger, ForeignKey("ticket_orders.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Numeric(precision=10, scale=2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String, nullable=False)
    transaction_id = Column(String, nullable=False, index=True)
    provider_reference = Column(String, nullable=True)
    status = Column(String, default="completed", nullable=False)
    details = Column("metadata", JSON, nullable=True)

    order = relationship("TicketOrder", back_populates="payments")

    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, order_id={self.ticket_order_id}, transaction_id='{self.transaction_id}')>"
