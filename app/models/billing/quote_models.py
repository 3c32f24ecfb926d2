from sqlalchemy import (
    Column, Integer, String, ForeignKey, Numeric, Enum, JSON, Index,
    CheckConstraint, Boolean, DateTime,
)
from sqlalchemy.orm import relationship
from decimal import Decimal
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin
from app.models.enums.quote_status import QuoteStatus
from app.models.enums.bill_frequency import BillFrequency


class Quote(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="RESTRICT"), nullable=True, index=True)
    coterm_id = Column(Integer, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True, index=True)
    coupon_id = Column(Integer, nullable=True)

    status = Column(Enum(QuoteStatus), nullable=False, default=QuoteStatus.draft, index=True)
    term = Column(Integer, nullable=False, default=0)
    net_terms = Column(Integer, nullable=False, default=30)
    tax = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    presentable = Column(Boolean, nullable=False, default=False)
    archived = Column(Boolean, nullable=False, default=False)
    preferred = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    sent_on = Column(DateTime(timezone=True), nullable=True)
    expires_on = Column(DateTime(timezone=True), nullable=True)
    activated_on = Column(DateTime(timezone=True), nullable=True)
    contract_expires = Column(DateTime(timezone=True), nullable=True)

    contract_name = Column(String(255), nullable=True)
    contract_ip = Column(String(64), nullable=True)
    signature_id = Column(Integer, ForeignKey("stored_files.id", ondelete="SET NULL"), nullable=True)

    declined_reason = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    account = relationship("Account", lazy="selectin")
    lead = relationship("Lead", lazy="selectin")
    coterm = relationship("Quote", remote_side=[id], lazy="selectin", join_depth=1)
    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.ord",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_quote_account_status", "account_id", "status"),
        CheckConstraint("account_id IS NOT NULL OR lead_id IS NOT NULL", name="ck_quote_has_owner"),
        CheckConstraint("term >= 0", name="ck_quote_term_non_negative"),
        CheckConstraint("tax >= 0", name="ck_quote_tax_non_negative"),
    )

    @property
    def editable(self) -> bool:
        return self.activated_on is None and not self.archived

    def __repr__(self):
        return f"<Quote id={self.id} status={self.status}>"


class QuoteItem(Base, TimestampMixin):
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_item_id = Column(Integer, ForeignKey("bill_items.id", ondelete="SET NULL"), nullable=True, index=True)

    description = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    qty = Column(Integer, nullable=False, default=1)
    ord = Column(Integer, nullable=False, default=0)
    frequency = Column(Enum(BillFrequency), nullable=True)
    payments = Column(Integer, nullable=True)
    addon_total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    notes = Column(String, nullable=True)
    meta = Column(JSON, nullable=True)

    quote = relationship("Quote", back_populates="items", lazy="selectin")
    item = relationship("BillItem", lazy="selectin")

    __table_args__ = (
        Index("ix_quote_item_quote_ord", "quote_id", "ord"),
        CheckConstraint("qty > 0", name="ck_quote_item_qty_positive"),
        CheckConstraint("price >= 0", name="ck_quote_item_price_non_negative"),
        CheckConstraint("payments IS NULL OR payments >= 0", name="ck_quote_item_payments_non_negative"),
    )

    def __repr__(self):
        return f"<QuoteItem id={self.id} bill_item_id={self.bill_item_id} ord={self.ord} qty={self.qty}>"
