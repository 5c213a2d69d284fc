from sqlalchemy import CheckConstraint, Column, DateTime, BigInteger, String, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from boxoffice.models.base import Base, BigIntPK, TimestampMixin


TICKET_STATUSES = ("valid", "redeemed", "void")


class PurchasedTicket(Base, TimestampMixin):
    __tablename__ = "purchased_tickets"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    ticket_uid = Column(String(36), unique=True, nullable=False)
    ticket_order_id = Column(BigInteger, ForeignKey("ticket_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event_ticket_id = Column(BigInteger, ForeignKey("ticket_categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    ticket_number = Column(String, unique=True, index=True, nullable=False)

    qr_code_data = Column(Text, nullable=False)
    qr_code_hash = Column(String(64), unique=True, index=True, nullable=False)

    status = Column(String, default="valid", nullable=False, index=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
    redeemed_by = Column(String, nullable=True)
    redemption_location = Column(String, nullable=True)

    customer_name = Column(String, nullable=False)
    ticket_type_name = Column(String, nullable=False)
    price_paid = Column(Numeric(precision=10, scale=2), nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('valid', 'redeemed', 'void')", name='check_ticket_status'),
        CheckConstraint("status != 'redeemed' OR redeemed_at IS NOT NULL", name='check_redeemed_has_timestamp'),
    )

    order = relationship("TicketOrder", back_populates="tickets")
    category = relationship("TicketCategory", back_populates="tickets")

    def __repr__(self):
        return f"<PurchasedTicket(id={self.id}, ticket_number='{self.ticket_number}', status='{self.status}')>"
