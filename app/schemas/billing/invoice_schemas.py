from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from app.models.enums.invoice_status import InvoiceStatus


# =====================================================
# BASE
# =====================================================
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =====================================================
# OUTPUT
# =====================================================
class InvoiceItemOut(ORMBase):
    id: int
    bill_item_id: Optional[int]
    code: Optional[str]
    name: str
    description: Optional[str]
    price: Decimal
    qty: int
    line_total: Decimal


class InvoiceOut(ORMBase):
    id: int
    account_id: int
    quote_id: Optional[int]
    status: InvoiceStatus
    po: Optional[str]
    due_on: Optional[datetime]
    sent_on: Optional[datetime]
    total: Decimal
    version: int
    created_at: datetime
    items: List[InvoiceItemOut]


class InvoiceListData(BaseModel):
    total: int
    items: List[InvoiceOut]
