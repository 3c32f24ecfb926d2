from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, JSON, Index, CheckConstraint, DateTime
from sqlalchemy.orm import relationship
from decimal import Decimal
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin
from app.models.enums.invoice_status import InvoiceStatus


class Invoice(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.draft, index=True)
    po = Column(String(100), nullable=True)
    due_on = Column(DateTime(timezone=True), nullable=True)
    sent_on = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", lazy="selectin")
    account = relationship("Account", lazy="selectin")

    __table_args__ = (Index("ix_invoice_account_status", "account_id", "status"),)

    @property
    def total(self) -> Decimal:
        return sum((i.line_total for i in self.items), Decimal("0"))

    def __repr__(self):
        return f"<Invoice id={self.id} status={self.status}>"


class InvoiceItem(Base, TimestampMixin):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_item_id = Column(Integer, ForeignKey("bill_items.id", ondelete="SET NULL"), nullable=True, index=True)
    code = Column(String(50), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    qty = Column(Integer, nullable=False)
    meta = Column(JSON, nullable=True)

    invoice = relationship("Invoice", back_populates="items", lazy="selectin")

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_invoice_item_qty_positive"),
        CheckConstraint("price >= 0", name="ck_invoice_item_price_non_negative"),
    )

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price) * self.qty

    def __repr__(self):
        return f"<InvoiceItem id={self.id} bill_item_id={self.bill_item_id} qty={self.qty}>"
