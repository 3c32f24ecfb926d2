from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.core.settings import QuoteSettings
from app.integrations.analysis_engine import MarginAnalysis
from app.models.billing.quote_models import Quote, QuoteItem
from app.models.enums.bill_frequency import BillFrequency
from app.models.enums.bill_item_type import BillItemType
from app.models.masters.bill_item_models import BillItem
from app.services.billing import quote_financials as fin
from app.utils.decimal_utils import round_money

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _ref(type, price="100", deleted=False):
    return BillItem(name=f"{type.value}", type=type, price=Decimal(price), taxable=True, is_deleted=deleted)


def _item(ref, price, qty=1, ord=1, frequency=None, payments=None, addon="0"):
    return QuoteItem(
        item=ref,
        price=Decimal(price),
        qty=qty,
        ord=ord,
        frequency=frequency,
        payments=payments,
        addon_total=Decimal(addon),
    )


def _quote(*items, tax="0"):
    return Quote(items=list(items), tax=Decimal(tax), created_at=NOW - timedelta(days=3))


def test_item_kind_is_a_tagged_variant():
    assert fin.item_kind(_item(_ref(BillItemType.services), "1")) == fin.ItemKind.service
    assert fin.item_kind(_item(_ref(BillItemType.products), "1")) == fin.ItemKind.product
    assert fin.item_kind(_item(_ref(BillItemType.products, deleted=True), "1")) == fin.ItemKind.deleted
    assert fin.item_kind(QuoteItem(item=None, price=Decimal("1"), qty=1)) == fin.ItemKind.deleted


def test_service_plus_financed_product_end_to_end():
    q = _quote(
        _item(_ref(BillItemType.services), "100", qty=2),
        _item(_ref(BillItemType.products), "50", frequency=BillFrequency.monthly, payments=2),
        tax="12.34",
    )

    assert fin.recurring_charge(q) == Decimal("225")
    assert fin.one_time_charge(q) == Decimal("0")
    assert fin.subtotal(q) == Decimal("225")
    assert fin.total(q) == Decimal("237.34")


def test_financed_product_splits_over_payments():
    ref = _ref(BillItemType.products)
    financed = _quote(_item(ref, "100", qty=1, frequency=BillFrequency.monthly, payments=3))
    assert round_money(fin.recurring_charge(financed)) == Decimal("33.33")
    assert fin.one_time_charge(financed) == Decimal("0")

    unfinanced = _quote(_item(ref, "100", qty=1, frequency=BillFrequency.monthly, payments=None))
    assert fin.recurring_charge(unfinanced) == Decimal("0")
    assert fin.one_time_charge(unfinanced) == Decimal("100")


def test_zero_payments_is_not_financed():
    q = _quote(_item(_ref(BillItemType.products), "40", frequency=BillFrequency.monthly, payments=0))
    assert fin.one_time_charge(q) == Decimal("40")
    assert fin.invoiceable_products(q) == 1


def test_payments_without_frequency_is_not_financed():
    q = _quote(_item(_ref(BillItemType.products), "30", qty=2, frequency=None, payments=3))
    assert fin.is_financed(q.items[0]) is False
    assert fin.recurring_charge(q) == Decimal("0")
    assert fin.one_time_charge(q) == Decimal("60")


def test_addons_count_toward_their_partition():
    q = _quote(
        _item(_ref(BillItemType.services), "10", addon="5"),
        _item(_ref(BillItemType.products), "20", addon="2.50"),
    )
    assert fin.recurring_charge(q) == Decimal("15")
    assert fin.one_time_charge(q) == Decimal("22.50")


def test_deleted_references_are_ignored_by_every_aggregate():
    q = _quote(
        _item(_ref(BillItemType.services), "10"),
        _item(_ref(BillItemType.services, deleted=True), "999"),
        QuoteItem(item=None, price=Decimal("500"), qty=1),
    )
    assert fin.recurring_charge(q) == Decimal("10")
    assert fin.one_time_charge(q) == Decimal("0")


def test_aggregates_are_deterministic():
    q = _quote(
        _item(_ref(BillItemType.services), "19.99", qty=3),
        _item(_ref(BillItemType.products), "7.77", frequency=BillFrequency.quarterly, payments=7),
        _item(_ref(BillItemType.products), "5.55", qty=2),
        tax="1.11",
    )
    first = (fin.recurring_charge(q), fin.one_time_charge(q), fin.subtotal(q), fin.total(q))
    second = (fin.recurring_charge(q), fin.one_time_charge(q), fin.subtotal(q), fin.total(q))
    assert first == second


def test_discount_only_when_enabled():
    q = _quote(
        _item(_ref(BillItemType.services, price="100"), "80", qty=2),
        _item(_ref(BillItemType.products, price="50", deleted=True), "10"),
    )
    assert fin.discount(q, QuoteSettings(show_discount=False)) == Decimal("0")
    assert fin.discount(q, QuoteSettings(show_discount=True)) == Decimal("40")


def test_age_in_days_accepts_naive_timestamps():
    q = _quote()
    q.created_at = (NOW - timedelta(days=10)).replace(tzinfo=None)
    assert fin.age_in_days(q, NOW) == 10


def test_margin_band_thresholds():
    target = Decimal("40")
    assert fin.margin_band(Decimal("20"), target) == "danger"
    assert fin.margin_band(Decimal("35"), target) == "warning"
    assert fin.margin_band(Decimal("40"), target) == "success"
    assert fin.margin_variation(Decimal("30"), target) == Decimal("-25.00")
    assert fin.margin_band(Decimal("30"), Decimal("0")) is None


async def test_margin_is_none_when_analysis_unavailable(make_analysis):
    q = _quote()
    assert await fin.margin(q, make_analysis()) is None
    analysis = await fin.margin(q, make_analysis(margin="50"))
    assert analysis.margin == Decimal("50")


def test_summarize_rolls_everything_up():
    q = _quote(_item(_ref(BillItemType.services), "100", qty=2), tax="5")
    analysis = MarginAnalysis(*(Decimal(v) for v in ("1", "50", "0", "0", "0", "0")))
    f = fin.summarize(q, QuoteSettings(margin_target=Decimal("40")), analysis, now=NOW)

    assert f.recurring == Decimal("200")
    assert f.total == Decimal("205")
    assert f.age_in_days == 3
    assert f.margin_band == "success"
    assert f.margin_variation == Decimal("25.00")
