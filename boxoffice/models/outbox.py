from sqlalchemy import JSON, Column, BigInteger, DateTime, String, Text, Index
from boxoffice.models.base import Base, BigIntPK, TimestampMixin


class NotificationOutbox(Base, TimestampMixin):
    __tablename__ = "notification_outbox"

    id = Column(BigIntPK, primary_key=True, index=True, autoincrement=True)
    kind = Column(String, nullable=False)
    aggregate_id = Column(BigInteger, nullable=False)
    payload = Column(JSON, nullable=False)
    dedupe_key = Column(String, unique=True, nullable=False)
    status = Column(String, default="pending", nullable=False)
    attempts = Column(BigInteger, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_notification_outbox_status_created', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<NotificationOutbox(id={self.id}, kind='{self.kind}', status='{self.status}', attempts={self.attempts})>"
