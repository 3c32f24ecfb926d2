from decimal import Decimal

from sqlalchemy import select

from app.models.support.activity_models import SystemActivity
from app.services.billing.tax_service import (
    Resolved,
    Unresolved,
    calculate_tax,
    integration_tax,
    rate_for,
)


async def test_integration_amount_is_stored_rounded(db, factory, make_finance):
    account = await factory.account()
    svc = await factory.service()
    q = await factory.quote(account=account, items=[(svc, {})])

    q, resolution = await calculate_tax(db, q.id, make_finance(amount="8.255"))

    assert resolution == Resolved(Decimal("8.255"), "integration")
    assert q.tax == Decimal("8.26")

    logged = (await db.execute(select(SystemActivity.activity_type))).scalars().all()
    assert "CALCULATE_TAX" in logged


async def test_falls_back_to_location_rate_for_taxable_items(db, factory, make_finance):
    await factory.tax_rate("TX", "8.25")
    account = await factory.account(state="tx ")
    svc = await factory.service(price="100")
    exempt = await factory.product(price="50", taxable=False)
    q = await factory.quote(account=account, items=[(svc, {"qty": 2}), (exempt, {})])

    finance = make_finance()
    q, resolution = await calculate_tax(db, q.id, finance)

    assert finance.calls == 1
    assert isinstance(resolution, Resolved)
    assert resolution.source == "location"
    assert q.tax == Decimal("16.50")


async def test_non_taxable_lead_always_pays_zero(db, factory, make_finance):
    await factory.tax_rate("TX", "8.25")
    lead = await factory.lead(state="TX", taxable=False)
    svc = await factory.service()
    q = await factory.quote(lead=lead, items=[(svc, {})])

    q, resolution = await calculate_tax(db, q.id, make_finance())

    assert resolution == Resolved(Decimal("0"), "non_taxable")
    assert q.tax == Decimal("0")


async def test_missing_rate_leaves_tax_unchanged(db, factory, make_finance):
    account = await factory.account(state="ZZ")
    svc = await factory.service()
    q = await factory.quote(account=account, items=[(svc, {})])
    q.tax = Decimal("3.00")
    await db.commit()

    q, resolution = await calculate_tax(db, q.id, make_finance())

    assert isinstance(resolution, Unresolved)
    assert q.tax == Decimal("3.00")


async def test_slow_integration_is_unresolved(factory, make_finance):
    account = await factory.account()
    q = await factory.quote(account=account)

    resolution = await integration_tax(q, make_finance(amount="1", delay=1), timeout=0.01)

    assert resolution == Unresolved("integration timed out")


async def test_rate_lookup_normalises_state(db, factory):
    await factory.tax_rate("CA", "7.250")

    assert await rate_for(db, " ca") == Decimal("7.250")
    assert await rate_for(db, None) is None
    assert await rate_for(db, "NV") is None
