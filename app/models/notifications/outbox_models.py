from sqlalchemy import Column, Integer, String, JSON, Boolean, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class NotificationOutbox(Base, TimestampMixin):
    """Queued notifications; written in the same transaction as the change they announce."""

    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True)
    template = Column(String(100), nullable=False, index=True)
    recipient_email = Column(String(255), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    context = Column(JSON, nullable=False, default=dict)
    attachments = Column(JSON, nullable=False, default=list)
    delivered = Column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_outbox_pending", "delivered", "created_at"),)

    def __repr__(self):
        return f"<NotificationOutbox id={self.id} template={self.template}>"
