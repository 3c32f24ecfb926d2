from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from app.models.enums.quote_status import QuoteStatus
from app.models.enums.bill_frequency import BillFrequency

# =====================================================
# ITEM PAYLOADS
# =====================================================

class QuoteItemCreate(BaseModel):
    bill_item_id: int
    qty: int = Field(1, gt=0)
    price: Optional[Decimal] = Field(None, ge=0, description="Defaults to the catalog price")
    frequency: Optional[BillFrequency] = None
    payments: Optional[int] = Field(None, ge=0)
    addon_total: Decimal = Field(Decimal("0"), ge=0)
    description: Optional[str] = None
    notes: Optional[str] = None
    meta: Optional[dict] = None


class QuoteItemUpdate(BaseModel):
    qty: Optional[int] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, ge=0)
    frequency: Optional[BillFrequency] = None
    payments: Optional[int] = Field(None, ge=0)
    addon_total: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None
    notes: Optional[str] = None
    meta: Optional[dict] = None

    @field_validator("qty", "price", "addon_total", mode="before")
    @classmethod
    def _not_null(cls, v):
        # omit the field to keep the current value; NULL is not storable
        if v is None:
            raise ValueError("must not be null")
        return v


class QuoteItemMove(BaseModel):
    position: int = Field(ge=1)


# =====================================================
# ITEM RESPONSES
# =====================================================

class QuoteItemOut(BaseModel):
    id: int
    bill_item_id: Optional[int]
    name: str
    kind: str
    ord: int
    price: Decimal
    qty: int
    frequency: Optional[BillFrequency]
    payments: Optional[int]
    addon_total: Decimal
    line_total: Decimal
    description: Optional[str]
    notes: Optional[str]
    meta: Optional[dict]


# =====================================================
# QUOTE CREATE / TRANSITIONS
# =====================================================

class QuoteCreate(BaseModel):
    account_id: Optional[int] = None
    lead_id: Optional[int] = None
    coterm_id: Optional[int] = None
    name: Optional[str] = None
    term: int = Field(0, ge=0)
    net_terms: Optional[int] = Field(None, ge=0)
    expires_on: Optional[datetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_owner(self):
        if (self.account_id is None) == (self.lead_id is None):
            raise ValueError("Exactly one of account_id or lead_id is required")
        if self.coterm_id is not None and self.account_id is None:
            raise ValueError("Co-term quotes must belong to an account")
        return self


class QuoteDecline(BaseModel):
    reason: str = Field(min_length=1)


class QuoteExecute(BaseModel):
    account_id: int
    name: str = Field(min_length=1, description="Signer name")
    signature: str = Field(min_length=1, description="data:image/png;base64,... payload")


# =====================================================
# FINANCIALS
# =====================================================

class MarginOut(BaseModel):
    profit: Decimal
    margin: Decimal
    opex: Decimal
    capex: Decimal
    monthly_commission: Decimal
    agent_spiff: Decimal


class QuoteFinancialsOut(BaseModel):
    recurring: Decimal
    one_time: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discount: Decimal
    age_in_days: int
    invoiceable_products: int
    margin: Optional[MarginOut] = None
    margin_variation: Optional[Decimal] = None
    margin_band: Optional[str] = None


class TaxResultOut(BaseModel):
    quote_id: int
    tax: Decimal
    source: str


# =====================================================
# QUOTE RESPONSE
# =====================================================

class QuoteOut(BaseModel):
    id: int
    name: Optional[str]
    account_id: Optional[int]
    lead_id: Optional[int]
    coterm_id: Optional[int]
    status: QuoteStatus

    term: int
    net_terms: int
    tax: Decimal

    presentable: bool
    archived: bool
    preferred: bool
    editable: bool

    sent_on: Optional[datetime]
    expires_on: Optional[datetime]
    activated_on: Optional[datetime]
    contract_expires: Optional[datetime]
    contract_name: Optional[str]
    declined_reason: Optional[str]
    notes: Optional[str]

    version: int
    created_at: datetime
    updated_at: Optional[datetime]

    services: List[QuoteItemOut]
    products: List[QuoteItemOut]
    unlinked_items: List[QuoteItemOut]
    financials: QuoteFinancialsOut


class QuoteListItem(BaseModel):
    id: int
    name: Optional[str]
    account_id: Optional[int]
    lead_id: Optional[int]
    status: QuoteStatus
    archived: bool
    items_count: int
    created_at: datetime


class QuoteListData(BaseModel):
    total: int
    items: List[QuoteListItem]


class CotermResultOut(BaseModel):
    quote: QuoteOut
    source_quote_id: int
    removed_items: int
    migrated_items: int
    invoice_id: Optional[int]
