import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.billing.quote_models import Quote, QuoteItem
from app.models.masters.bill_item_models import BillItem

from app.schemas.billing.quote_schemas import QuoteItemCreate, QuoteItemUpdate

from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.services.billing.quote_financials import ItemKind, item_kind, items_of_kind
from app.services.billing.quote_service import ensure_editable, get_quote_or_404
from app.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)

PARTITIONS = (ItemKind.service, ItemKind.product)


def _item_name(item: QuoteItem) -> str:
    return item.item.name if item.item is not None else f"item #{item.id}"


def _find_item(q: Quote, item_id: int) -> QuoteItem:
    for item in q.items:
        if item.id == item_id:
            return item
    raise AppException(404, "Quote item not found", ErrorCode.QUOTE_ITEM_NOT_FOUND)


async def repair_order(db: AsyncSession, q: Quote) -> None:
    """
    Renumber ``ord`` to 1..N inside the services and products partitions,
    keeping the current relative order. Items without a catalog reference
    sit outside both partitions and keep their position.
    """
    for kind in PARTITIONS:
        for position, item in enumerate(items_of_kind(q, kind), start=1):
            if item.ord != position:
                item.ord = position
    await db.flush()


async def add_item(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteItemCreate,
) -> QuoteItem:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)

    bill_item = await db.get(BillItem, payload.bill_item_id)
    if not bill_item or bill_item.is_deleted:
        raise AppException(404, "Catalog item not found", ErrorCode.BILL_ITEM_NOT_FOUND)

    item = QuoteItem(
        item=bill_item,
        price=payload.price if payload.price is not None else bill_item.price,
        qty=payload.qty,
        frequency=payload.frequency,
        payments=payload.payments,
        addon_total=payload.addon_total,
        description=payload.description if payload.description is not None else bill_item.description,
        notes=payload.notes,
        meta=payload.meta,
    )
    item.ord = max((i.ord for i in items_of_kind(q, item_kind(item))), default=0) + 1
    q.items.append(item)

    await repair_order(db, q)

    await emit_activity(
        db,
        code=ActivityCode.ADD_QUOTE_ITEM,
        subject_id=q.id,
        target_id=q.id,
        item_name=bill_item.name,
        qty=item.qty,
    )

    await db.commit()

    logger.info("Quote item added", extra={"quote_id": q.id, "item_id": item.id})
    return item


async def update_item(
    db: AsyncSession,
    quote_id: int,
    item_id: int,
    payload: QuoteItemUpdate,
) -> QuoteItem:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)
    item = _find_item(q, item_id)

    changes: list[str] = []
    for field, value in payload.model_dump(exclude_unset=True).items():
        if getattr(item, field) != value:
            setattr(item, field, value)
            changes.append(field)

    if not changes:
        return item

    await repair_order(db, q)

    await emit_activity(
        db,
        code=ActivityCode.UPDATE_QUOTE_ITEM,
        subject_id=q.id,
        target_id=q.id,
        item_name=_item_name(item),
        changes=", ".join(changes),
    )

    await db.commit()
    return item


async def remove_item(
    db: AsyncSession,
    quote_id: int,
    item_id: int,
) -> Quote:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)
    item = _find_item(q, item_id)
    name = _item_name(item)

    q.items.remove(item)
    await repair_order(db, q)

    await emit_activity(
        db,
        code=ActivityCode.REMOVE_QUOTE_ITEM,
        subject_id=q.id,
        target_id=q.id,
        item_name=name,
    )

    await db.commit()

    logger.info("Quote item removed", extra={"quote_id": q.id, "item_id": item_id})
    return q


async def move_item(
    db: AsyncSession,
    quote_id: int,
    item_id: int,
    position: int,
) -> Quote:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)
    item = _find_item(q, item_id)

    kind = item_kind(item)
    if kind == ItemKind.deleted:
        raise AppException(
            400,
            "Items whose catalog entry was deleted cannot be reordered",
            ErrorCode.VALIDATION_ERROR,
        )

    siblings = [i for i in items_of_kind(q, kind) if i is not item]
    position = min(position, len(siblings) + 1)
    siblings.insert(position - 1, item)
    for n, sibling in enumerate(siblings, start=1):
        sibling.ord = n

    await repair_order(db, q)

    await emit_activity(
        db,
        code=ActivityCode.MOVE_QUOTE_ITEM,
        subject_id=q.id,
        target_id=q.id,
        item_name=_item_name(item),
        position=position,
    )

    await db.commit()
    return q
