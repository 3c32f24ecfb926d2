from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, SoftDeleteMixin


class Account(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    state = Column(String(10), nullable=True, index=True)
    taxable = Column(Boolean, nullable=False, default=True)
    net_terms = Column(Integer, nullable=False, default=30)
    po = Column(String(100), nullable=True)

    admin_name = Column(String(255), nullable=True)
    admin_email = Column(String(255), nullable=True)
    agent_email = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_account_active", "is_active"),)

    def __repr__(self):
        return f"<Account id={self.id} name={self.name} active={self.is_active}>"


class AccountItem(Base, TimestampMixin):
    """Contracted recurring service billed to an account."""

    __tablename__ = "account_items"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_item_id = Column(Integer, ForeignKey("bill_items.id", ondelete="SET NULL"), nullable=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True, index=True)

    description = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    qty = Column(Integer, nullable=False, default=1)
    notes = Column(String, nullable=True)
    meta = Column(JSON, nullable=True)

    item = relationship("BillItem", lazy="selectin")

    __table_args__ = (Index("ix_account_item_account_quote", "account_id", "quote_id"),)

    def __repr__(self):
        return f"<AccountItem id={self.id} account_id={self.account_id} quote_id={self.quote_id}>"
