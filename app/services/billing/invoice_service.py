from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from sqlalchemy.orm import selectinload

from app.models.billing.invoice_models import Invoice, InvoiceItem
from app.models.billing.quote_models import Quote, QuoteItem
from app.models.masters.account_models import Account
from app.models.enums.invoice_status import InvoiceStatus

from app.schemas.billing.invoice_schemas import InvoiceOut, InvoiceItemOut, InvoiceListData

from app.constants.activity_codes import ActivityCode
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.integrations.notifier import Attachment, Notifier, Recipient
from app.integrations.renderer import DocumentRenderer, render_pdf
from app.services.billing.quote_documents import build_invoice_context
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import money_format, round_money

logger = logging.getLogger(__name__)


async def _get_invoice_or_404(db: AsyncSession, invoice_id: int, *, for_update: bool = False) -> Invoice:
    stmt = (
        select(Invoice)
        .options(selectinload(Invoice.items), selectinload(Invoice.account))
        .where(
            Invoice.id == invoice_id,
            Invoice.is_deleted.is_(False),
        )
    )
    if for_update:
        stmt = stmt.with_for_update()

    invoice = (await db.execute(stmt)).scalar_one_or_none()
    if not invoice:
        raise AppException(404, "Invoice not found", ErrorCode.INVOICE_NOT_FOUND)
    return invoice


def map_invoice(invoice: Invoice) -> InvoiceOut:
    return InvoiceOut(
        id=invoice.id,
        account_id=invoice.account_id,
        quote_id=invoice.quote_id,
        status=invoice.status,
        po=invoice.po,
        due_on=invoice.due_on,
        sent_on=invoice.sent_on,
        total=round_money(invoice.total),
        version=invoice.version,
        created_at=invoice.created_at,
        items=[
            InvoiceItemOut(
                id=i.id,
                bill_item_id=i.bill_item_id,
                code=i.code,
                name=i.name,
                description=i.description,
                price=round_money(i.price),
                qty=i.qty,
                line_total=round_money(i.line_total),
            )
            for i in invoice.items
        ],
    )


async def create_settlement_invoice(
    db: AsyncSession,
    account: Account,
    quote: Quote,
    products: list[QuoteItem],
    now: datetime,
) -> Invoice:
    """Draft invoice for a quote's one-time items. Flushes, never commits."""
    invoice = Invoice(
        account=account,
        account_id=account.id,
        quote_id=quote.id,
        status=InvoiceStatus.draft,
        po=account.po,
        due_on=now + timedelta(days=account.net_terms or 0),
    )

    for item in products:
        if item.item is None:
            continue
        invoice.items.append(
            InvoiceItem(
                bill_item_id=item.item.id,
                code=item.item.code,
                name=item.item.name,
                description=" ".join(p for p in (item.description, item.notes) if p) or None,
                price=item.price,
                qty=item.qty,
                meta=item.meta,
            )
        )

    db.add(invoice)
    await db.flush()

    await emit_activity(
        db,
        code=ActivityCode.CREATE_INVOICE,
        subject_id=invoice.id,
        target_id=invoice.id,
        quote_id=quote.id,
        count=len(invoice.items),
    )

    logger.info("Settlement invoice created", extra={"invoice_id": invoice.id, "quote_id": quote.id})
    return invoice


async def mark_invoice_sent(
    db: AsyncSession,
    invoice: Invoice,
    *,
    notifier: Notifier,
    renderer: DocumentRenderer,
    now: datetime | None = None,
) -> Invoice:
    """Advance a draft invoice to sent and queue it for the account admin."""
    if invoice.status != InvoiceStatus.draft:
        raise AppException(409, "Only draft invoices can be sent", ErrorCode.INVOICE_INVALID_STATE)

    account = invoice.account
    invoice.status = InvoiceStatus.sent
    invoice.sent_on = now or datetime.now(timezone.utc)
    invoice.version += 1

    pdf = await render_pdf(renderer, "invoice", build_invoice_context(invoice))
    await notifier.deliver(
        "account.invoice",
        Recipient(account.admin_email, account.admin_name),
        {"invoice_id": invoice.id, "total": money_format(invoice.total), "company": account.name},
        [Attachment(f"Invoice-{invoice.id}.pdf", pdf)],
    )

    await emit_activity(
        db,
        code=ActivityCode.SEND_INVOICE,
        subject_id=invoice.id,
        target_id=invoice.id,
        amount=money_format(invoice.total),
        recipient=account.admin_email or account.name,
    )
    await db.flush()
    return invoice


async def send_invoice(
    db: AsyncSession,
    invoice_id: int,
    *,
    notifier: Notifier,
    renderer: DocumentRenderer,
) -> Invoice:
    invoice = await _get_invoice_or_404(db, invoice_id, for_update=True)
    await mark_invoice_sent(db, invoice, notifier=notifier, renderer=renderer)
    await db.commit()
    return invoice


async def get_invoice(db: AsyncSession, invoice_id: int) -> Invoice:
    return await _get_invoice_or_404(db, invoice_id)


async def list_invoices(
    db: AsyncSession,
    *,
    account_id: int | None = None,
    quote_id: int | None = None,
    page: int = 1,
    page_size: int = 20,
) -> InvoiceListData:
    filters = [Invoice.is_deleted.is_(False)]
    if account_id:
        filters.append(Invoice.account_id == account_id)
    if quote_id:
        filters.append(Invoice.quote_id == quote_id)

    total = await db.scalar(select(func.count(Invoice.id)).where(*filters))

    result = await db.execute(
        select(Invoice)
        .options(selectinload(Invoice.items))
        .where(*filters)
        .order_by(desc(Invoice.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return InvoiceListData(
        total=total or 0,
        items=[map_invoice(i) for i in result.scalars().all()],
    )
