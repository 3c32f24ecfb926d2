from sqlalchemy import Column, Integer, String, Numeric
from app.core.db import Base
from app.models.base.mixins import TimestampMixin


class TaxLocation(Base, TimestampMixin):
    __tablename__ = "tax_locations"

    id = Column(Integer, primary_key=True)
    state = Column(String(10), nullable=False, unique=True, index=True)
    rate = Column(Numeric(6, 3), nullable=False)

    def __repr__(self):
        return f"<TaxLocation state={self.state} rate={self.rate}>"
