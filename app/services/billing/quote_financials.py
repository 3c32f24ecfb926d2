"""
Derived quote figures.

Everything here is a pure function of a loaded Quote (items with their
catalog references) plus explicit settings. Nothing is cached and nothing
is written back; the only persisted figure, ``Quote.tax``, belongs to
tax_service.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from app.core.exceptions import IntegrationUnavailable
from app.core.settings import QuoteSettings
from app.integrations.analysis_engine import AnalysisEngine, MarginAnalysis
from app.models.billing.quote_models import Quote, QuoteItem
from app.models.enums.bill_item_type import BillItemType
from app.utils.decimal_utils import ZERO, to_decimal, round_money, money_format


class ItemKind(str, Enum):
    service = "service"
    product = "product"
    deleted = "deleted"


def item_kind(item: QuoteItem) -> ItemKind:
    ref = item.item
    if ref is None or ref.is_deleted:
        return ItemKind.deleted
    if ref.type == BillItemType.services:
        return ItemKind.service
    return ItemKind.product


def is_financed(item: QuoteItem) -> bool:
    # payments == 0 means "not financed", same as unset
    return item.frequency is not None and bool(item.payments)


def line_amount(item: QuoteItem) -> Decimal:
    return to_decimal(item.price) * item.qty


def items_of_kind(quote: Quote, kind: ItemKind) -> list[QuoteItem]:
    return sorted(
        (i for i in quote.items if item_kind(i) == kind),
        key=lambda i: (i.ord, i.id or 0),
    )


# =====================================================
# CHARGES
# =====================================================
def recurring_charge(quote: Quote) -> Decimal:
    total = ZERO
    for item in quote.items:
        kind = item_kind(item)
        if kind == ItemKind.service:
            total += line_amount(item) + to_decimal(item.addon_total)
        elif kind == ItemKind.product and is_financed(item):
            total += item.frequency.split_total(line_amount(item), item.payments)
    return total


def one_time_charge(quote: Quote) -> Decimal:
    total = ZERO
    for item in quote.items:
        if item_kind(item) == ItemKind.product and not is_financed(item):
            total += line_amount(item) + to_decimal(item.addon_total)
    return total


def subtotal(quote: Quote) -> Decimal:
    return recurring_charge(quote) + one_time_charge(quote)


def total(quote: Quote) -> Decimal:
    return subtotal(quote) + to_decimal(quote.tax)


def discount(quote: Quote, settings: QuoteSettings) -> Decimal:
    """Catalog value minus quoted value. Zero unless discounts are shown."""
    if not settings.show_discount:
        return ZERO

    catalog = ZERO
    quoted = ZERO
    for item in quote.items:
        if item_kind(item) == ItemKind.deleted:
            continue
        catalog += to_decimal(item.item.price) * item.qty
        quoted += line_amount(item)
    return catalog - quoted


def invoiceable_products(quote: Quote) -> int:
    """Products that will be billed once on an invoice (not financed)."""
    return sum(
        1 for i in quote.items
        if item_kind(i) == ItemKind.product and not is_financed(i)
    )


def age_in_days(quote: Quote, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    created = quote.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return max((now - created).days, 0)


def activity_widget(quote: Quote) -> str:
    return f"MRR: {money_format(recurring_charge(quote))} / NRC: {money_format(one_time_charge(quote))}"


# =====================================================
# MARGIN (external analysis)
# =====================================================
async def margin(quote: Quote, engine: AnalysisEngine) -> MarginAnalysis | None:
    try:
        return await engine.by_quote(quote)
    except IntegrationUnavailable:
        return None


def margin_variation(actual: Decimal, target: Decimal) -> Decimal | None:
    """Percent above (+) or below (-) the margin target."""
    if not target:
        return None
    return round_money(to_decimal(actual) / to_decimal(target) * 100 - 100)


def margin_band(actual: Decimal, target: Decimal) -> str | None:
    if not target:
        return None
    to_target = to_decimal(actual) / to_decimal(target) * 100
    if to_target < 75:
        return "danger"
    if to_target < 100:
        return "warning"
    return "success"


# =====================================================
# SUMMARY
# =====================================================
@dataclass(frozen=True)
class QuoteFinancials:
    recurring: Decimal
    one_time: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discount: Decimal
    age_in_days: int
    invoiceable_products: int
    analysis: MarginAnalysis | None = None
    margin_variation: Decimal | None = None
    margin_band: str | None = None


def summarize(
    quote: Quote,
    settings: QuoteSettings,
    analysis: MarginAnalysis | None = None,
    now: datetime | None = None,
) -> QuoteFinancials:
    recurring = recurring_charge(quote)
    one_time = one_time_charge(quote)
    tax = to_decimal(quote.tax)

    return QuoteFinancials(
        recurring=recurring,
        one_time=one_time,
        subtotal=recurring + one_time,
        tax=tax,
        total=recurring + one_time + tax,
        discount=discount(quote, settings),
        age_in_days=age_in_days(quote, now),
        invoiceable_products=invoiceable_products(quote),
        analysis=analysis,
        margin_variation=margin_variation(analysis.margin, settings.margin_target) if analysis else None,
        margin_band=margin_band(analysis.margin, settings.margin_target) if analysis else None,
    )
