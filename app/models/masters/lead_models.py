from sqlalchemy import Column, Integer, String, Boolean, Enum
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin
from app.models.enums.lead_status import LeadStatus


class Lead(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True)
    company = Column(String(255), nullable=False, index=True)
    contact = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    state = Column(String(10), nullable=True, index=True)
    taxable = Column(Boolean, nullable=False, default=True)
    status = Column(Enum(LeadStatus), nullable=False, default=LeadStatus.new, index=True)
    agent_email = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Lead id={self.id} company={self.company} status={self.status}>"
