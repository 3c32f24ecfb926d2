from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, asc, desc
from sqlalchemy.orm import selectinload

from app.models.billing.quote_models import Quote, QuoteItem
from app.models.masters.account_models import Account
from app.models.masters.lead_models import Lead
from app.models.enums.quote_status import QuoteStatus

from app.schemas.billing.quote_schemas import (
    QuoteCreate,
    QuoteOut,
    QuoteItemOut,
    QuoteFinancialsOut,
    MarginOut,
    QuoteListData,
    QuoteListItem,
)

from app.core.exceptions import AppException, EditingLocked
from app.core.settings import QuoteSettings
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.integrations.analysis_engine import MarginAnalysis
from app.services.billing.quote_financials import (
    ItemKind,
    item_kind,
    items_of_kind,
    line_amount,
    summarize,
)
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import round_money

logger = logging.getLogger(__name__)


def _quote_query():
    return (
        select(Quote)
        .options(
            selectinload(Quote.items).selectinload(QuoteItem.item),
            selectinload(Quote.account),
            selectinload(Quote.lead),
            selectinload(Quote.coterm).selectinload(Quote.items),
        )
        .where(Quote.is_deleted.is_(False))
    )


async def get_quote_or_404(
    db: AsyncSession,
    quote_id: int,
    *,
    for_update: bool = False,
    refresh: bool = False,
) -> Quote:
    stmt = _quote_query().where(Quote.id == quote_id)
    if for_update:
        stmt = stmt.with_for_update()
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)

    result = await db.execute(stmt)
    q = result.scalar_one_or_none()
    if not q:
        raise AppException(404, "Quote not found", ErrorCode.QUOTE_NOT_FOUND)
    return q


def ensure_editable(q: Quote) -> None:
    if not q.editable:
        raise EditingLocked(q.id)


async def claim_activation(db: AsyncSession, q: Quote, now: datetime) -> None:
    """
    Stamp ``activated_on`` only if no other transaction got there first.

    The conditional UPDATE re-checks editability in the database right
    before the state change, so two concurrent executions of the same quote
    cannot both succeed.
    """
    result = await db.execute(
        update(Quote)
        .where(
            Quote.id == q.id,
            Quote.activated_on.is_(None),
            Quote.archived.is_(False),
            Quote.is_deleted.is_(False),
        )
        .values(activated_on=now)
        .returning(Quote.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        raise EditingLocked(q.id, "Quote has already been executed or archived")
    q.activated_on = now


def owner_name(q: Quote) -> str:
    if q.lead is not None and q.account is None:
        return q.lead.company
    return q.account.name if q.account is not None else "-"


# =====================================================
# MAPPERS
# =====================================================
def _map_item(i: QuoteItem) -> QuoteItemOut:
    return QuoteItemOut(
        id=i.id,
        bill_item_id=i.bill_item_id,
        name=i.item.name if i.item is not None else "Deleted item",
        kind=item_kind(i).value,
        ord=i.ord,
        price=round_money(i.price),
        qty=i.qty,
        frequency=i.frequency,
        payments=i.payments,
        addon_total=round_money(i.addon_total),
        line_total=round_money(line_amount(i)),
        description=i.description,
        notes=i.notes,
        meta=i.meta,
    )


def map_quote(
    q: Quote,
    settings: QuoteSettings,
    analysis: MarginAnalysis | None = None,
) -> QuoteOut:
    f = summarize(q, settings, analysis)

    return QuoteOut(
        id=q.id,
        name=q.name,
        account_id=q.account_id,
        lead_id=q.lead_id,
        coterm_id=q.coterm_id,
        status=q.status,
        term=q.term,
        net_terms=q.net_terms,
        tax=round_money(q.tax),
        presentable=q.presentable,
        archived=q.archived,
        preferred=q.preferred,
        editable=q.editable,
        sent_on=q.sent_on,
        expires_on=q.expires_on,
        activated_on=q.activated_on,
        contract_expires=q.contract_expires,
        contract_name=q.contract_name,
        declined_reason=q.declined_reason,
        notes=q.notes,
        version=q.version,
        created_at=q.created_at,
        updated_at=q.updated_at,
        services=[_map_item(i) for i in items_of_kind(q, ItemKind.service)],
        products=[_map_item(i) for i in items_of_kind(q, ItemKind.product)],
        unlinked_items=[_map_item(i) for i in items_of_kind(q, ItemKind.deleted)],
        financials=QuoteFinancialsOut(
            recurring=round_money(f.recurring),
            one_time=round_money(f.one_time),
            subtotal=round_money(f.subtotal),
            tax=round_money(f.tax),
            total=round_money(f.total),
            discount=round_money(f.discount),
            age_in_days=f.age_in_days,
            invoiceable_products=f.invoiceable_products,
            margin=MarginOut(**f.analysis.as_dict()) if f.analysis else None,
            margin_variation=f.margin_variation,
            margin_band=f.margin_band,
        ),
    )


# =====================================================
# CREATE
# =====================================================
async def _validate_coterm_source(
    db: AsyncSession,
    source_id: int,
    account_id: int,
) -> Quote:
    source = await db.get(Quote, source_id)
    if (
        not source
        or source.is_deleted
        or source.account_id != account_id
        or source.status != QuoteStatus.executed
    ):
        raise AppException(
            409,
            "Co-term source must be an executed quote on the same account",
            ErrorCode.COTERM_INVALID_SOURCE,
        )
    return source


async def create_quote(
    db: AsyncSession,
    payload: QuoteCreate,
) -> Quote:
    net_terms = payload.net_terms

    if payload.account_id is not None:
        account = await db.get(Account, payload.account_id)
        if not account or account.is_deleted or not account.is_active:
            raise AppException(404, "Account not found", ErrorCode.ACCOUNT_NOT_FOUND)
        company = account.name
        if net_terms is None:
            net_terms = account.net_terms
    else:
        lead = await db.get(Lead, payload.lead_id)
        if not lead or lead.is_deleted:
            raise AppException(404, "Lead not found", ErrorCode.LEAD_NOT_FOUND)
        company = lead.company

    if payload.coterm_id is not None:
        await _validate_coterm_source(db, payload.coterm_id, payload.account_id)

    q = Quote(
        name=payload.name,
        account_id=payload.account_id,
        lead_id=payload.lead_id,
        coterm_id=payload.coterm_id,
        status=QuoteStatus.draft,
        term=payload.term,
        net_terms=net_terms if net_terms is not None else 30,
        expires_on=payload.expires_on,
        notes=payload.notes,
    )
    db.add(q)
    await db.flush()

    await emit_activity(
        db,
        code=ActivityCode.CREATE_QUOTE,
        subject_id=q.id,
        target_id=q.id,
        company=company,
    )

    await db.commit()

    logger.info("Quote created", extra={"quote_id": q.id, "coterm_id": q.coterm_id})

    return await get_quote_or_404(db, q.id, refresh=True)


# =====================================================
# READ
# =====================================================
async def list_quotes(
    db: AsyncSession,
    account_id: int | None = None,
    lead_id: int | None = None,
    status: QuoteStatus | None = None,
    include_archived: bool = False,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> QuoteListData:
    filters = [Quote.is_deleted.is_(False)]
    if account_id:
        filters.append(Quote.account_id == account_id)
    if lead_id:
        filters.append(Quote.lead_id == lead_id)
    if status:
        filters.append(Quote.status == status)
    if not include_archived:
        filters.append(Quote.archived.is_(False))

    base_query = (
        select(
            Quote.id,
            Quote.name,
            Quote.account_id,
            Quote.lead_id,
            Quote.status,
            Quote.archived,
            Quote.created_at,
            func.count(QuoteItem.id).label("items_count"),
        )
        .outerjoin(QuoteItem, QuoteItem.quote_id == Quote.id)
        .where(*filters)
        .group_by(Quote.id)
    )

    total = await db.scalar(select(func.count(Quote.id)).where(*filters))

    sort_map = {
        "created_at": Quote.created_at,
        "id": Quote.id,
        "status": Quote.status,
    }
    sort_col = sort_map.get(sort_by, Quote.created_at)

    result = await db.execute(
        base_query
        .order_by(asc(sort_col) if order == "asc" else desc(sort_col))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return QuoteListData(
        total=total or 0,
        items=[
            QuoteListItem(
                id=r.id,
                name=r.name,
                account_id=r.account_id,
                lead_id=r.lead_id,
                status=r.status,
                archived=r.archived,
                items_count=r.items_count,
                created_at=r.created_at,
            )
            for r in result.all()
        ],
    )


# =====================================================
# DELETE
# =====================================================
async def delete_quote(
    db: AsyncSession,
    quote_id: int,
) -> Quote:
    q = await get_quote_or_404(db, quote_id, for_update=True)
    ensure_editable(q)

    q.is_deleted = True
    q.version += 1

    await db.commit()
    logger.info("Quote deleted", extra={"quote_id": q.id})
    return q
