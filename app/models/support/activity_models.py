from sqlalchemy import Column, Integer, String, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class SystemActivity(Base, TimestampMixin):
    """Immutable audit log. APPEND-ONLY. Never updated, never deleted."""

    __tablename__ = "system_activity"

    id = Column(Integer, primary_key=True)
    activity_type = Column(String(50), nullable=False, index=True)
    subject_id = Column(Integer, nullable=True, index=True)
    message = Column(String, nullable=False)
    detail = Column(String, nullable=True)

    __table_args__ = (Index("ix_system_activity_subject_created", "subject_id", "created_at"),)

    def __repr__(self):
        return f"<SystemActivity id={self.id} type={self.activity_type} subject={self.subject_id}>"
