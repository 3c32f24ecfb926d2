from sqlalchemy import Column, Integer, String, Numeric, Boolean, Enum, Index
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin
from app.models.enums.bill_item_type import BillItemType


class BillItem(Base, TimestampMixin, SoftDeleteMixin):
    """Catalog entry. Quotes price against it but never change it."""

    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    type = Column(Enum(BillItemType), nullable=False, index=True)
    taxable = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (Index("ix_bill_item_type_name", "type", "name"),)

    def __repr__(self):
        return f"<BillItem id={self.id} code={self.code} type={self.type}>"
