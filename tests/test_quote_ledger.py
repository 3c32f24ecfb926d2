from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.exceptions import AppException, EditingLocked
from app.schemas.billing.quote_schemas import QuoteItemCreate, QuoteItemUpdate
from app.services.billing.quote_financials import ItemKind, items_of_kind
from app.services.billing.quote_ledger_service import add_item, move_item, remove_item, update_item
from app.services.billing.quote_lifecycle_service import execute_direct, send_quote
from app.services.billing.quote_service import get_quote_or_404
from app.integrations.file_storage import DatabaseFileStorage


def _ords(q, kind):
    return [i.ord for i in items_of_kind(q, kind)]


def _names(q, kind):
    return [i.item.name for i in items_of_kind(q, kind)]


async def _ledger_quote(factory):
    account = await factory.account()
    s1 = await factory.service(name="s1")
    s2 = await factory.service(name="s2")
    s3 = await factory.service(name="s3")
    p1 = await factory.product(name="p1")
    p2 = await factory.product(name="p2")
    q = await factory.quote(
        account=account,
        items=[(s1, {}), (p1, {}), (s2, {}), (p2, {}), (s3, {})],
    )
    return account, q


async def test_partitions_are_numbered_independently(factory):
    _, q = await _ledger_quote(factory)

    assert _ords(q, ItemKind.service) == [1, 2, 3]
    assert _ords(q, ItemKind.product) == [1, 2]
    assert _names(q, ItemKind.service) == ["s1", "s2", "s3"]


async def test_add_item_defaults_to_catalog_price(db, factory):
    account = await factory.account()
    svc = await factory.service(price="42.50")
    q = await factory.quote(account=account)

    item = await add_item(db, q.id, QuoteItemCreate(bill_item_id=svc.id, qty=2))

    assert item.price == Decimal("42.50")
    assert item.description == svc.description
    assert item.ord == 1


async def test_remove_item_closes_the_gap(db, factory):
    _, q = await _ledger_quote(factory)
    middle = items_of_kind(q, ItemKind.service)[1]

    q = await remove_item(db, q.id, middle.id)

    assert _ords(q, ItemKind.service) == [1, 2]
    assert _names(q, ItemKind.service) == ["s1", "s3"]
    assert _ords(q, ItemKind.product) == [1, 2]


async def test_move_item_reorders_within_its_partition(db, factory):
    _, q = await _ledger_quote(factory)
    last = items_of_kind(q, ItemKind.service)[-1]

    q = await move_item(db, q.id, last.id, 1)

    assert _names(q, ItemKind.service) == ["s3", "s1", "s2"]
    assert _ords(q, ItemKind.service) == [1, 2, 3]
    assert _ords(q, ItemKind.product) == [1, 2]


async def test_move_item_clamps_past_the_end(db, factory):
    _, q = await _ledger_quote(factory)
    first = items_of_kind(q, ItemKind.product)[0]

    q = await move_item(db, q.id, first.id, 99)

    assert _names(q, ItemKind.product) == ["p2", "p1"]


async def test_deleted_catalog_items_sit_outside_the_partitions(db, factory):
    account = await factory.account()
    keep = await factory.service(name="keep")
    gone = await factory.service(name="gone")
    q = await factory.quote(account=account, items=[(gone, {}), (keep, {})])

    gone.is_deleted = True
    await db.commit()
    q = await get_quote_or_404(db, q.id, refresh=True)

    stale = items_of_kind(q, ItemKind.deleted)[0]
    assert stale.ord == 1

    other = await factory.service(name="other")
    await add_item(db, q.id, QuoteItemCreate(bill_item_id=other.id))
    q = await get_quote_or_404(db, q.id, refresh=True)

    assert _names(q, ItemKind.service) == ["keep", "other"]
    assert _ords(q, ItemKind.service) == [1, 2]
    assert items_of_kind(q, ItemKind.deleted)[0].ord == 1

    with pytest.raises(AppException) as exc:
        await move_item(db, q.id, stale.id, 1)
    assert exc.value.status_code == 400


async def test_update_item_changes_only_given_fields(db, factory):
    _, q = await _ledger_quote(factory)
    target = items_of_kind(q, ItemKind.product)[0]

    item = await update_item(db, q.id, target.id, QuoteItemUpdate(qty=4, payments=3))

    assert item.qty == 4
    assert item.payments == 3
    assert item.price == Decimal("50")


async def test_unknown_catalog_item_is_rejected(db, factory):
    account = await factory.account()
    q = await factory.quote(account=account)

    with pytest.raises(AppException) as exc:
        await add_item(db, q.id, QuoteItemCreate(bill_item_id=9999))
    assert exc.value.status_code == 404


async def test_locked_quote_rejects_ledger_changes(db, factory):
    account, q = await _ledger_quote(factory)
    await execute_direct(db, q.id, factory.execute_payload(account), "10.0.0.1", storage=DatabaseFileStorage(db))
    before = sorted((i.id, i.ord) for i in q.items)

    extra = await factory.service()
    with pytest.raises(EditingLocked):
        await add_item(db, q.id, QuoteItemCreate(bill_item_id=extra.id))
    with pytest.raises(EditingLocked):
        await remove_item(db, q.id, q.items[0].id)

    q = await get_quote_or_404(db, q.id, refresh=True)
    assert sorted((i.id, i.ord) for i in q.items) == before


async def test_archived_quote_is_locked_before_activation(db, factory, notifier, renderer):
    account, q = await _ledger_quote(factory)
    q.archived = True
    await db.commit()
    assert q.activated_on is None

    extra = await factory.service()
    with pytest.raises(EditingLocked):
        await add_item(db, q.id, QuoteItemCreate(bill_item_id=extra.id))
    with pytest.raises(EditingLocked):
        await send_quote(db, q.id, notifier=notifier, renderer=renderer)

    assert notifier.sent == []
    q = await get_quote_or_404(db, q.id, refresh=True)
    assert len(q.items) == 5


@pytest.mark.parametrize("field", ["qty", "price", "addon_total"])
def test_update_rejects_null_for_required_fields(field):
    with pytest.raises(ValidationError):
        QuoteItemUpdate.model_validate({field: None})


async def test_update_with_omitted_fields_keeps_them(db, factory):
    _, q = await _ledger_quote(factory)
    target = items_of_kind(q, ItemKind.service)[0]

    item = await update_item(db, q.id, target.id, QuoteItemUpdate.model_validate({"notes": "rack 2"}))

    assert item.notes == "rack 2"
    assert item.qty == 1
    assert item.price == Decimal("100")
